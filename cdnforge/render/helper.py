"""View helper factory — the ``CDN(...)`` callable templates invoke."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from cdnforge.config import CdnConfig
from cdnforge.core.errors import ConfigurationError
from cdnforge.core.resolver import AssetResolver
from cdnforge.models.assets import reference_from_literal
from cdnforge.render.tags import Escape, escape_html, render_tag

ViewHelper = Callable[..., str]


def make_view_helper(
    config: CdnConfig,
    *,
    escape: Escape = escape_html,
) -> ViewHelper:
    """Build the helper exposed to templates as ``CDN``.

    Usage in a Jinja environment::

        env.globals["CDN"] = make_view_helper(config)

    and in a template::

        {{ CDN(['/js/a.js', '/js/b.js'], {'defer': true}) }}
    """
    config.validate_required(rendering=True)
    resolver = AssetResolver(config.require_public_dir())

    def cdn(assets: Any = None, attributes: Mapping[str, Any] | None = None) -> str:
        if assets is None:
            raise ConfigurationError("assets undefined")
        try:
            reference = reference_from_literal(assets)
        except (TypeError, ValidationError) as exc:
            raise ConfigurationError(str(exc)) from exc
        return render_tag(config, reference, attributes, resolver=resolver, escape=escape)

    return cdn
