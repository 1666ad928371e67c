"""Logging setup for command-line runs."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "INFO", *, console: Console | None = None) -> logging.Logger:
    """Attach a ``RichHandler`` to the ``cdnforge`` logger and return it.

    Calling this twice replaces the handler rather than stacking a second one.
    """
    package_logger = logging.getLogger("cdnforge")
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)
    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(level.upper())
    return package_logger
