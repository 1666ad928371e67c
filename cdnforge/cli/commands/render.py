"""``cdnforge render`` — print the tag a template would emit."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from cdnforge.cli.options import build_config
from cdnforge.core.errors import CdnError
from cdnforge.models.assets import reference_from_literal
from cdnforge.render.tags import render_tag


def render_cmd(
    assets: list[str] = typer.Argument(..., help="One asset path, or several to form a bundle."),
    public_dir: Optional[Path] = typer.Option(None, "--public", "-p", help="Public asset directory."),
    domain: Optional[str] = typer.Option(None, "--domain", help="CDN domain."),
    production: bool = typer.Option(
        True, "--production/--development", help="Render CDN or local URLs."
    ),
    raw: bool = typer.Option(False, "--raw", help="Print the bare URL instead of a tag."),
) -> None:
    """Render the embedding tag for an asset or bundle."""
    config = build_config(public_dir=public_dir, domain=domain, production=production)
    reference = reference_from_literal(assets[0] if len(assets) == 1 else assets)
    attributes = {"raw": True} if raw else {}
    try:
        typer.echo(render_tag(config, reference, attributes), nl=raw)
    except CdnError as exc:
        typer.echo(f"CDN error: {exc}", err=True)
        raise typer.Exit(code=1)
