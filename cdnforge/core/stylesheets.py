"""Stylesheet helpers: minification, ``url(...)`` discovery and rewriting.

Only ``url(...)`` values inside the declarations that can load a
sub-resource are considered:

    background, background-image, border-image, content, cursor, src

Data URIs, absolute URLs (``http:``, ``https:``, ``//host``) and bare
fragments are left untouched.
"""

from __future__ import annotations

import logging
import posixpath
import re
from collections.abc import Callable
from pathlib import Path

import aiofiles
import httpx
import rcssmin

from cdnforge.core.errors import AssetReadError

logger = logging.getLogger(__name__)

URL_PROPERTIES: tuple[str, ...] = (
    "background-image",
    "background",
    "border-image",
    "content",
    "cursor",
    "src",
)

_DECLARATION_RE = re.compile(
    r"(?<![\w-])(?P<prop>" + "|".join(re.escape(p) for p in URL_PROPERTIES) + r")"
    r"(?P<colon>\s*:\s*)(?P<value>[^;{}]*)",
    re.IGNORECASE,
)
_URL_RE = re.compile(r"url\(\s*(?P<quote>['\"]?)(?P<url>[^'\")]+)(?P=quote)\s*\)", re.IGNORECASE)
_EXTERNAL_RE = re.compile(r"^(?:[a-z][a-z0-9+.-]*:|//)", re.IGNORECASE)


def minify_css(text: str) -> str:
    """Minify one stylesheet."""
    return rcssmin.cssmin(text)


def is_local_url(url: str) -> bool:
    """Whether *url* points at a file this pipeline should publish."""
    url = url.strip()
    if not url or url.startswith("#"):
        return False
    return _EXTERNAL_RE.match(url) is None


def split_url(url: str) -> tuple[str, str]:
    """Split ``fonts/a.eot?#iefix`` into ``("fonts/a.eot", "?#iefix")``."""
    for index, char in enumerate(url):
        if char in "?#":
            return url[:index], url[index:]
    return url, ""


def find_urls(css: str) -> list[str]:
    """Local ``url(...)`` targets of *css*, in order of first appearance."""
    found: list[str] = []
    for declaration in _DECLARATION_RE.finditer(css):
        for match in _URL_RE.finditer(declaration.group("value")):
            url = match.group("url").strip()
            if is_local_url(url) and url not in found:
                found.append(url)
    return found


def rewrite_urls(css: str, replace: Callable[[str], str]) -> str:
    """Return *css* with every local url target passed through *replace*."""

    def _rewrite_value(match: re.Match[str]) -> str:
        url = match.group("url").strip()
        if not is_local_url(url):
            return match.group(0)
        return f"url({match.group('quote')}{replace(url)}{match.group('quote')})"

    def _rewrite_declaration(match: re.Match[str]) -> str:
        value = _URL_RE.sub(_rewrite_value, match.group("value"))
        return f"{match.group('prop')}{match.group('colon')}{value}"

    return _DECLARATION_RE.sub(_rewrite_declaration, css)


def relative_url(target_artifact: str, from_artifact: str) -> str:
    """Path of *target_artifact* relative to the directory of *from_artifact*.

    >>> relative_url("images/a.png", "css/site.css")
    '../images/a.png'
    >>> relative_url("images/a.png", "a.css+b.css")
    'images/a.png'
    """
    start = posixpath.dirname(from_artifact) or "."
    return posixpath.relpath(target_artifact, start=start)


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------


async def read_stylesheet_from_disk(file_path: Path, public_path: str) -> str:
    """Read a stylesheet from the public directory."""
    try:
        async with aiofiles.open(file_path, encoding="utf-8") as f:
            return await f.read()
    except OSError as exc:
        raise AssetReadError(f"cannot read stylesheet '{public_path}': {exc}") from exc
    except UnicodeDecodeError as exc:
        raise AssetReadError(
            f"stylesheet '{public_path}' is not valid UTF-8: {exc}"
        ) from exc


class OriginStylesheetLoader:
    """Fetches stylesheets from the running application.

    Useful when CSS is produced by a preprocessor middleware and only exists
    as a response, not as a file in the public directory.
    """

    def __init__(self, origin_url: str, *, client: httpx.AsyncClient | None = None) -> None:
        self.origin_url = origin_url.rstrip("/")
        self._client = client

    async def __call__(self, file_path: Path, public_path: str) -> str:
        url = f"{self.origin_url}/{public_path.lstrip('/')}"
        try:
            if self._client is not None:
                response = await self._client.get(url)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise AssetReadError(f"cannot fetch stylesheet '{url}': {exc}") from exc
        logger.debug("Fetched stylesheet %s (%d bytes)", url, len(response.content))
        return response.text
