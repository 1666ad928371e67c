"""Publish manifest — opaque cache state used to skip redundant runs.

Stored as a JSON array of asset references in their literal form (a string
for a single asset, a list of strings for a bundle).  The manifest is only
consulted at start-up: present and non-empty means "nothing to do".
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from cdnforge.models.assets import AssetReference, reference_from_literal

logger = logging.getLogger(__name__)


class PublishManifest:
    """Reads and writes the manifest file at ``path``."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def is_populated(self) -> bool:
        """Whether the manifest exists and lists at least one reference."""
        if not self.path.exists():
            return False
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable manifest at %s", self.path)
            return False
        return isinstance(data, list) and len(data) > 0

    def load(self) -> list[AssetReference]:
        if not self.path.exists():
            return []
        data = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        return [reference_from_literal(item) for item in data]

    def write(self, references: Iterable[AssetReference]) -> None:
        entries = [reference.to_literal() for reference in references]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(entries, indent=2) + "\n", encoding="utf-8")
        logger.info("Wrote manifest with %d reference(s) to %s", len(entries), self.path)
