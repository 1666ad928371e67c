"""Tag Renderer — asset reference to HTML embedding markup.

Pure: everything it needs (mode, domain, protocol, public root) comes in
through the arguments on every call.

Production
    ``<base-url><path>?cache=<fingerprint>`` for a single asset and
    ``<base-url>/<a.js%2Bb.js>?cache=<fingerprint>`` for a bundle.
Development
    ``<path>?v=<now>``, one tag per bundle member, in order.

Reserved attributes
    ``raw``  : return the bare URL instead of a tag.
    ``lazy`` : put an image URL in ``data-src`` (or in the attribute named by
               a string value) instead of ``src``.
"""

from __future__ import annotations

import html
import time
from collections.abc import Callable, Mapping
from typing import Any
from urllib.parse import quote

from cdnforge.config import CdnConfig
from cdnforge.core.errors import UnknownAssetTypeError
from cdnforge.core.resolver import (
    ICON_TYPES,
    IMAGE_TYPES,
    SCRIPT_TYPES,
    STYLESHEET_TYPES,
    AssetResolver,
    artifact_name_for,
    guess_mime_type,
)
from cdnforge.models.assets import AssetReference, BundleAsset

Escape = Callable[[str], str]

RAW_ATTRIBUTE = "raw"
LAZY_ATTRIBUTE = "lazy"
DEFAULT_LAZY_SOURCE = "data-src"


def escape_html(value: str) -> str:
    return html.escape(value, quote=True)


def render_attributes(attributes: Mapping[str, Any], escape: Escape = escape_html) -> str:
    """``name="value"`` pairs sorted by name.

    ``True`` renders as ``name="name"``; ``False`` drops the attribute.
    """
    parts: list[str] = []
    for name in sorted(attributes):
        value = attributes[name]
        if value is False or value is None:
            continue
        if value is True:
            value = name
        parts.append(f'{escape(str(name))}="{escape(str(value))}"')
    return " ".join(parts)


def create_tag(
    url: str,
    mime_type: str,
    attributes: Mapping[str, Any] | None = None,
    *,
    escape: Escape = escape_html,
) -> str:
    """Wrap *url* in the tag that embeds an asset of *mime_type*."""
    attrs = dict(attributes or {})
    if attrs.pop(RAW_ATTRIBUTE, False) is True:
        return url
    lazy = attrs.pop(LAZY_ATTRIBUTE, False)

    if mime_type in SCRIPT_TYPES:
        attrs.setdefault("type", "text/javascript")
        attrs["src"] = url
        return f"<script {render_attributes(attrs, escape)}></script>"
    if mime_type in STYLESHEET_TYPES:
        attrs.setdefault("rel", "stylesheet")
        attrs["href"] = url
        return f"<link {render_attributes(attrs, escape)} />"
    if mime_type in IMAGE_TYPES:
        if lazy:
            source = lazy if isinstance(lazy, str) else DEFAULT_LAZY_SOURCE
        else:
            source = "src"
        attrs[source] = url
        return f"<img {render_attributes(attrs, escape)} />"
    if mime_type in ICON_TYPES:
        attrs.setdefault("rel", "shortcut icon")
        attrs["href"] = url
        return f"<link {render_attributes(attrs, escape)} />"
    raise UnknownAssetTypeError(f"unknown asset type '{mime_type}' for '{url}'")


def production_url(config: CdnConfig, reference: AssetReference, fingerprint: int) -> str:
    """CDN URL of *reference* with its ``?cache=`` fingerprint."""
    if isinstance(reference, BundleAsset):
        path = "/" + quote(artifact_name_for(reference), safe="/")
    else:
        path = reference.path if reference.path.startswith("/") else "/" + reference.path
    return f"{config.base_url}{path}?cache={fingerprint}"


def render_tag(
    config: CdnConfig,
    reference: AssetReference,
    attributes: Mapping[str, Any] | None = None,
    *,
    resolver: AssetResolver | None = None,
    now: float | None = None,
    escape: Escape = escape_html,
) -> str:
    """Render the embedding markup for *reference*.

    Parameters
    ----------
    config:
        Mode (``production``), CDN domain/protocol and the public root.
    resolver:
        Computes fingerprints in production; built from ``config.public_dir``
        when omitted.
    now:
        Epoch seconds used for the development cache-defeating parameter.
    """
    attributes = dict(attributes or {})
    raw = attributes.get(RAW_ATTRIBUTE) is True
    newline = "" if raw else "\n"

    if config.production:
        config.validate_required(rendering=True)
        resolver = resolver or AssetResolver(config.require_public_dir())
        asset = resolver.resolve(reference)
        url = production_url(config, reference, asset.fingerprint)
        return create_tag(url, asset.mime_type, attributes, escape=escape) + newline

    version = int((time.time() if now is None else now) * 1000)
    tags = [
        create_tag(f"{path}?v={version}", guess_mime_type(path), attributes, escape=escape)
        for path in reference.paths
    ]
    return "\n".join(tags) + newline
