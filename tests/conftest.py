"""Shared test fixtures for cdnforge."""

from __future__ import annotations

import stat
from collections.abc import Callable
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from cdnforge.config import CdnConfig
from tests.support import PNG_BYTES, SCRIPT_A, SCRIPT_B, SITE_CSS, FakeStorage


@pytest.fixture
def storage() -> FakeStorage:
    """Provide an empty in-memory storage backend."""
    return FakeStorage()


# ---------------------------------------------------------------------------
# Source trees
# ---------------------------------------------------------------------------


@pytest.fixture
def public_dir(tmp_path: Path) -> Path:
    """Public asset tree: two scripts, a stylesheet, a PNG, a GIF and an icon."""
    root = tmp_path / "public"
    (root / "js").mkdir(parents=True)
    (root / "css").mkdir()
    (root / "images").mkdir()
    (root / "js" / "a.js").write_text(SCRIPT_A, encoding="utf-8")
    (root / "js" / "b.js").write_text(SCRIPT_B, encoding="utf-8")
    (root / "css" / "site.css").write_text(SITE_CSS, encoding="utf-8")
    (root / "images" / "a.png").write_bytes(PNG_BYTES)
    (root / "images" / "spinner.gif").write_bytes(b"GIF89a-fake")
    (root / "favicon.ico").write_bytes(b"\x00\x00\x01\x00icon")
    return root


@pytest.fixture
def views_dir(tmp_path: Path) -> Path:
    """Empty template directory; tests write their own templates."""
    root = tmp_path / "views"
    root.mkdir()
    return root


# ---------------------------------------------------------------------------
# External optimizers
# ---------------------------------------------------------------------------


def _write_script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_tools(tmp_path: Path) -> SimpleNamespace:
    """Shell stand-ins for optipng and jpegtran.

    Each one appends its argv to ``log`` and overwrites the target file, which
    bumps its mtime just like the real tools do.
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    log = tmp_path / "tools.log"
    optipng = _write_script(
        bin_dir / "optipng",
        f'echo "optipng $*" >> "{log}"\nprintf "optimized-png" > "$1"\n',
    )
    jpegtran = _write_script(
        bin_dir / "jpegtran",
        f'echo "jpegtran $*" >> "{log}"\nprintf "optimized-jpeg" > "$5"\n',
    )
    broken = _write_script(bin_dir / "broken", 'echo "corrupt image data" >&2\nexit 3\n')
    return SimpleNamespace(optipng=optipng, jpegtran=jpegtran, broken=broken, log=log)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def make_config(
    tmp_path: Path, public_dir: Path, views_dir: Path, fake_tools: SimpleNamespace
) -> Callable[..., CdnConfig]:
    """Factory fixture: production config pointed at the temp trees."""

    def _factory(**overrides: Any) -> CdnConfig:
        values: dict[str, Any] = {
            "public_dir": public_dir,
            "views_dir": views_dir,
            "domain": "cdn.example.com",
            "bucket": "assets",
            "key": "AKIATEST",
            "secret": "not-a-secret",
            "production": True,
            "manifest_path": tmp_path / ".cdnforge" / "manifest.json",
            "upload_max_attempts": 3,
            "upload_initial_wait_seconds": 0.0,
            "upload_max_wait_seconds": 0.0,
            "optipng_binary": str(fake_tools.optipng),
            "jpegtran_binary": str(fake_tools.jpegtran),
        }
        values.update(overrides)
        return CdnConfig(_env_file=None, **values)

    return _factory
