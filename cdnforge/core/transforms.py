"""Transform Dispatcher — per-MIME transforms feeding the Publisher.

Five terminal transforms:

- ``script``      : concatenate members with newlines, minify and mangle
- ``stylesheet``  : minify each file, publish ``url(...)`` sub-resources and
                    rewrite their URLs relative to the published stylesheet
- ``raster-png``  : optipng in place, restore mtime, read bytes
- ``raster-jpeg`` : jpegtran in place, restore mtime, read bytes
- ``passthrough`` : bytes verbatim (GIF, ICO, SVG, fonts, anything else)

Every branch ends in ``Publisher.publish`` with the fixed header set.
Transform failures (syntax errors, tool exit codes, unreadable files) are
fatal and propagate; upload failures come back as a failed outcome.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from collections.abc import Awaitable, Callable
from pathlib import Path

import aiofiles
from calmjs.parse import es5
from calmjs.parse.exceptions import ECMASyntaxError
from calmjs.parse.unparsers.es5 import minify_print

from cdnforge.core import stylesheets
from cdnforge.core.errors import AssetReadError, ScriptSyntaxError, UnsupportedAssetError
from cdnforge.core.publisher import Publisher, build_headers
from cdnforge.core.resolver import (
    JPEG_TYPES,
    PNG_TYPES,
    SCRIPT_TYPES,
    STYLESHEET_TYPES,
    AssetResolver,
    artifact_name_for,
)
from cdnforge.core.tools import optimize_jpeg, optimize_png, restore_mtime
from cdnforge.models.assets import ResolvedAsset, SingleAsset, TransformKind
from cdnforge.models.publishing import PublishOutcome, PublishStatus

logger = logging.getLogger(__name__)

_POSITION_RE = re.compile(r"\bat (\d+):(\d+)")

SubresourcePublisher = Callable[[SingleAsset], Awaitable[PublishOutcome]]
StylesheetLoader = Callable[[Path, str], Awaitable[str]]


def transform_kind_for(mime_type: str) -> TransformKind:
    """Pick the terminal transform for *mime_type*."""
    if mime_type in SCRIPT_TYPES:
        return TransformKind.SCRIPT
    if mime_type in STYLESHEET_TYPES:
        return TransformKind.STYLESHEET
    if mime_type in PNG_TYPES:
        return TransformKind.RASTER_PNG
    if mime_type in JPEG_TYPES:
        return TransformKind.RASTER_JPEG
    return TransformKind.PASSTHROUGH


def minify_script(source: str, *, name: str) -> str:
    """Minify and mangle local identifiers; raise ``ScriptSyntaxError`` on bad input.

    The parser accepts ES5 only: ``let``, ``const``, arrow functions and other
    later syntax are rejected as syntax errors.
    """
    try:
        program = es5(source)
    except ECMASyntaxError as exc:
        line = column = None
        position = _POSITION_RE.search(str(exc))
        if position:
            line, column = int(position.group(1)), int(position.group(2))
        raise ScriptSyntaxError(name, str(exc), line=line, column=column) from exc
    return minify_print(program, obfuscate=True, obfuscate_globals=False)


async def read_bytes(path: Path, *, label: str) -> bytes:
    try:
        async with aiofiles.open(path, "rb") as f:
            return await f.read()
    except OSError as exc:
        raise AssetReadError(f"cannot read asset '{label}': {exc}") from exc


async def read_text(path: Path, *, label: str) -> str:
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            return await f.read()
    except OSError as exc:
        raise AssetReadError(f"cannot read asset '{label}': {exc}") from exc
    except UnicodeDecodeError as exc:
        raise AssetReadError(f"asset '{label}' is not valid UTF-8: {exc}") from exc


class TransformDispatcher:
    """Turns a stale ``ResolvedAsset`` into uploaded bytes.

    Parameters
    ----------
    resolver:
        Used to map stylesheet ``url(...)`` targets back to public paths.
    publisher:
        Receives the final bytes of every artifact.
    publish_subresource:
        Coroutine running the full pipeline (resolve, stale-check,
        transform, publish) for an image or font found in a stylesheet.
    load_stylesheet:
        Coroutine returning a stylesheet's text; defaults to reading it from
        the public directory.
    """

    def __init__(
        self,
        resolver: AssetResolver,
        publisher: Publisher,
        *,
        publish_subresource: SubresourcePublisher,
        load_stylesheet: StylesheetLoader | None = None,
        optipng_binary: str = "optipng",
        jpegtran_binary: str = "jpegtran",
    ) -> None:
        self._resolver = resolver
        self._publisher = publisher
        self._publish_subresource = publish_subresource
        self._load_stylesheet = load_stylesheet or stylesheets.read_stylesheet_from_disk
        self._optipng = optipng_binary
        self._jpegtran = jpegtran_binary

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, asset: ResolvedAsset) -> PublishOutcome:
        """Transform *asset* by MIME type and hand it to the Publisher."""
        kind = transform_kind_for(asset.mime_type)
        if asset.is_bundle and kind not in (TransformKind.SCRIPT, TransformKind.STYLESHEET):
            raise UnsupportedAssetError(
                f"unsupported mime type for bundle {asset.reference}: {asset.mime_type}"
            )
        logger.debug("Transforming '%s' as %s", asset.artifact_name, kind.value)

        if kind is TransformKind.SCRIPT:
            body = await self._script(asset)
        elif kind is TransformKind.STYLESHEET:
            body, failed_children = await self._stylesheet(asset)
            if failed_children:
                logger.error(
                    "Not uploading stylesheet '%s': sub-resources failed to publish: %s",
                    asset.artifact_name,
                    ", ".join(failed_children),
                )
                return self._outcome(
                    asset,
                    PublishStatus.FAILED,
                    "sub-resources failed: " + ", ".join(failed_children),
                )
        elif kind is TransformKind.RASTER_PNG:
            body = await self._raster(asset, optimize_png, self._optipng)
        elif kind is TransformKind.RASTER_JPEG:
            body = await self._raster(asset, optimize_jpeg, self._jpegtran)
        else:
            body = await read_bytes(asset.files[0], label=asset.artifact_name)

        ok = await self._publisher.publish(
            asset.artifact_name, body, build_headers(asset.mime_type)
        )
        if ok:
            return self._outcome(asset, PublishStatus.PUBLISHED)
        return self._outcome(asset, PublishStatus.FAILED, "upload failed")

    @staticmethod
    def _outcome(asset: ResolvedAsset, status: PublishStatus, detail: str = "") -> PublishOutcome:
        return PublishOutcome(
            reference=asset.reference,
            artifact_name=asset.artifact_name,
            status=status,
            fingerprint=asset.fingerprint,
            detail=detail,
        )

    # ------------------------------------------------------------------
    # script
    # ------------------------------------------------------------------

    async def _script(self, asset: ResolvedAsset) -> bytes:
        members = asset.reference.paths
        sources = [
            await read_text(path, label=member) for path, member in zip(asset.files, members)
        ]
        try:
            return minify_script("\n".join(sources), name=asset.artifact_name).encode("utf-8")
        except ScriptSyntaxError:
            # Name the member that is broken on its own, if there is one.
            for source, member in zip(sources, members):
                minify_script(source, name=member)
            raise

    # ------------------------------------------------------------------
    # stylesheet
    # ------------------------------------------------------------------

    async def _stylesheet(self, asset: ResolvedAsset) -> tuple[bytes, list[str]]:
        rendered: list[str] = []
        children: dict[str, SingleAsset] = {}

        for file_path, public_path in zip(asset.files, asset.reference.paths):
            css = stylesheets.minify_css(await self._load_stylesheet(file_path, public_path))
            replacements: dict[str, str] = {}
            for url in stylesheets.find_urls(css):
                target, suffix = stylesheets.split_url(url)
                child = SingleAsset(path=self._public_path_for(target, file_path))
                child_name = artifact_name_for(child)
                children.setdefault(child_name, child)
                replacements[url] = (
                    stylesheets.relative_url(child_name, asset.artifact_name) + suffix
                )
            rendered.append(
                stylesheets.rewrite_urls(css, lambda url: replacements.get(url, url))
            )

        # Join on every child before the parent is final.
        outcomes = await asyncio.gather(
            *(self._publish_subresource(child) for child in children.values())
        )
        failed = [o.artifact_name for o in outcomes if not o.succeeded]
        return "\n".join(rendered).encode("utf-8"), failed

    def _public_path_for(self, target: str, stylesheet_file: Path) -> str:
        if target.startswith("/"):
            file_path = self._resolver.file_for(target)
        else:
            file_path = Path(os.path.normpath(stylesheet_file.parent / target))
        return self._resolver.public_path_for(file_path)

    # ------------------------------------------------------------------
    # raster images
    # ------------------------------------------------------------------

    async def _raster(
        self,
        asset: ResolvedAsset,
        optimize: Callable[..., Awaitable[None]],
        binary: str,
    ) -> bytes:
        path = asset.files[0]
        try:
            original = path.stat()
        except OSError as exc:
            raise AssetReadError(f"cannot read asset '{asset.artifact_name}': {exc}") from exc
        await optimize(path, binary=binary)
        restore_mtime(path, original)
        return await read_bytes(path, label=asset.artifact_name)
