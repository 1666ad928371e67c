"""Shared option handling for CLI commands."""

from __future__ import annotations

from typing import Any

from cdnforge.config import CdnConfig


def build_config(**overrides: Any) -> CdnConfig:
    """``CdnConfig`` from env/.env, with explicitly given CLI options on top."""
    return CdnConfig(**{name: value for name, value in overrides.items() if value is not None})
