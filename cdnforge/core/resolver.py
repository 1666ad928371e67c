"""Asset Resolver / Grouper — naming, MIME consistency and fingerprints.

Turns a raw ``AssetReference`` into a ``ResolvedAsset``:

- Single: MIME from the extension, fingerprint from the file's mtime,
  artifact name is the public path without its leading slash.  A missing
  file is tolerated (fingerprint 0) so generated assets can be referenced
  before they exist.
- Bundle: every member must share the first member's MIME type; the
  artifact name is the ``+``-joined basenames, in order; the fingerprint is
  the *max* member mtime.  A missing member is fatal.

The artifact name never embeds the fingerprint: the same object name is
reused across revisions and the fingerprint travels as a query parameter.
"""

from __future__ import annotations

import logging
import mimetypes
import posixpath
from pathlib import Path, PurePosixPath

from cdnforge.core.errors import ConfigurationError, MismatchedBundleError, MissingAssetError
from cdnforge.models.assets import AssetReference, BundleAsset, ResolvedAsset, SingleAsset

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

# Extensions the stdlib table misses or maps inconsistently across versions.
_MIME_OVERRIDES: dict[str, str] = {
    ".js": "application/javascript",
    ".mjs": "application/javascript",
    ".css": "text/css",
    ".ico": "image/x-icon",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    ".eot": "application/vnd.ms-fontobject",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
}

SCRIPT_TYPES = frozenset({"application/javascript", "text/javascript"})
STYLESHEET_TYPES = frozenset({"text/css"})
PNG_TYPES = frozenset({"image/png"})
JPEG_TYPES = frozenset({"image/jpeg", "image/jpg", "image/pjpeg"})
IMAGE_TYPES = PNG_TYPES | JPEG_TYPES | frozenset({"image/gif", "image/svg+xml", "image/webp"})
ICON_TYPES = frozenset({"image/x-icon", "image/vnd.microsoft.icon"})

BUNDLE_SEPARATOR = "+"


def guess_mime_type(path: str | Path) -> str:
    """Return the MIME type for *path* based on its extension."""
    suffix = PurePosixPath(str(path)).suffix.lower()
    if suffix in _MIME_OVERRIDES:
        return _MIME_OVERRIDES[suffix]
    guessed, _ = mimetypes.guess_type(f"file{suffix}")
    return guessed or DEFAULT_MIME_TYPE


def artifact_name_for(reference: AssetReference) -> str:
    """Deterministic remote object name for *reference*.

    >>> artifact_name_for(BundleAsset(paths=("/js/a.js", "/js/b.js")))
    'a.js+b.js'
    >>> artifact_name_for(SingleAsset(path="/css/site.css"))
    'css/site.css'
    """
    if isinstance(reference, BundleAsset):
        return BUNDLE_SEPARATOR.join(posixpath.basename(p) for p in reference.paths)
    return reference.path.lstrip("/")


def mtime_millis(path: Path) -> int:
    """Modification time of *path* in epoch milliseconds."""
    return path.stat().st_mtime_ns // 1_000_000


class AssetResolver:
    """Joins asset references against the public root.

    Parameters
    ----------
    public_dir:
        Directory that public asset paths (``/js/app.js``) are relative to.
    """

    def __init__(self, public_dir: Path) -> None:
        self.public_dir = Path(public_dir)

    def file_for(self, public_path: str) -> Path:
        """Absolute filesystem path for a public path."""
        return self.public_dir / public_path.lstrip("/")

    def public_path_for(self, file_path: Path) -> str:
        """Inverse of ``file_for``: ``/``-rooted public path of *file_path*.

        Raises ``ConfigurationError`` if the file lies outside the public root.
        """
        root = self.public_dir.resolve()
        resolved = Path(file_path).resolve()
        try:
            relative = resolved.relative_to(root)
        except ValueError:
            raise ConfigurationError(
                f"asset '{file_path}' is outside the public directory '{root}'"
            ) from None
        return "/" + relative.as_posix()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, reference: AssetReference) -> ResolvedAsset:
        """Resolve *reference* into name, files, MIME type and fingerprint."""
        if isinstance(reference, BundleAsset):
            return self._resolve_bundle(reference)
        return self._resolve_single(reference)

    def _resolve_single(self, reference: SingleAsset) -> ResolvedAsset:
        file_path = self.file_for(reference.path)
        try:
            fingerprint = mtime_millis(file_path)
        except OSError:
            logger.warning("Asset '%s' not found on disk; fingerprint defaults to 0", reference.path)
            fingerprint = 0
        return ResolvedAsset(
            reference=reference,
            artifact_name=artifact_name_for(reference),
            files=(file_path,),
            mime_type=guess_mime_type(reference.path),
            fingerprint=fingerprint,
        )

    def _resolve_bundle(self, reference: BundleAsset) -> ResolvedAsset:
        expected = ""
        for member in reference.paths:
            found = guess_mime_type(member)
            if not expected:
                expected = found
            elif found != expected:
                raise MismatchedBundleError(reference.paths, expected, found, member)

        files: list[Path] = []
        fingerprint = 0
        for member in reference.paths:
            file_path = self.file_for(member)
            try:
                fingerprint = max(fingerprint, mtime_millis(file_path))
            except OSError as exc:
                raise MissingAssetError(
                    f"bundle member '{member}' of {list(reference.paths)!r} not found: {exc}"
                ) from exc
            files.append(file_path)

        return ResolvedAsset(
            reference=reference,
            artifact_name=artifact_name_for(reference),
            files=tuple(files),
            mime_type=expected,
            fingerprint=fingerprint,
        )
