"""Template Scanner — discovers asset markers in the view-template tree."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from pathlib import Path

import aiofiles

from cdnforge.core.errors import ConfigurationError, TemplateParseError
from cdnforge.core.markers import marker_pattern, parse_marker_arguments
from cdnforge.models.assets import ScannedMarker

logger = logging.getLogger(__name__)


def dedupe_markers(markers: Iterable[ScannedMarker]) -> list[ScannedMarker]:
    """Collapse markers with identical references, keeping first-seen order.

    Only the reference identity matters for publishing; attributes of later
    duplicates are dropped.
    """
    seen: dict[object, ScannedMarker] = {}
    for marker in markers:
        seen.setdefault(marker.reference, marker)
    return list(seen.values())


class TemplateScanner:
    """Walks ``views_dir`` and extracts every marker invocation.

    Parameters
    ----------
    views_dir:
        Root of the template tree.
    extensions:
        File extensions (with the leading dot) considered templates.
    marker_name:
        Identifier of the marker call, ``CDN`` by default.
    """

    def __init__(
        self,
        views_dir: Path,
        *,
        extensions: Iterable[str] = (".jade", ".ejs"),
        marker_name: str = "CDN",
    ) -> None:
        self.views_dir = Path(views_dir)
        self.extensions = frozenset(ext.lower() for ext in extensions)
        self._pattern = marker_pattern(marker_name)

    def iter_templates(self) -> Iterator[Path]:
        """Template files under ``views_dir`` in a stable (sorted) order."""
        if not self.views_dir.is_dir():
            raise ConfigurationError(f"views directory '{self.views_dir}' does not exist")
        for root, dirs, files in os.walk(self.views_dir):
            dirs.sort()
            for name in sorted(files):
                if os.path.splitext(name)[1].lower() in self.extensions:
                    yield Path(root) / name

    def scan_text(self, text: str, *, source: str = "") -> list[ScannedMarker]:
        """All markers in *text*, in order, duplicates included."""
        markers: list[ScannedMarker] = []
        for match in self._pattern.finditer(text):
            try:
                markers.append(parse_marker_arguments(match.group(1)))
            except TemplateParseError as exc:
                raise TemplateParseError(
                    exc.message,
                    source=f"{source}: {match.group(0)}" if source else match.group(0),
                    position=exc.position,
                ) from exc
        return markers

    async def scan(self) -> list[ScannedMarker]:
        """Deduplicated markers across every template.

        An empty list means no markers were found; the caller decides whether
        that is an error.  A malformed marker anywhere fails the whole scan.
        """
        found: list[ScannedMarker] = []
        for path in self.iter_templates():
            try:
                async with aiofiles.open(path, encoding="utf-8") as f:
                    text = await f.read()
            except UnicodeDecodeError as exc:
                raise TemplateParseError(
                    f"template is not valid UTF-8: {exc}", source=str(path)
                ) from exc
            except OSError as exc:
                raise ConfigurationError(f"cannot read template '{path}': {exc}") from exc
            markers = self.scan_text(text, source=str(path))
            if markers:
                logger.debug("%s: %d marker(s)", path, len(markers))
            found.extend(markers)
        unique = dedupe_markers(found)
        logger.info("Found %d asset reference(s) in %s", len(unique), self.views_dir)
        return unique
