"""``cdnforge scan`` — list the asset references found in templates."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cdnforge.cli.options import build_config
from cdnforge.core.errors import CdnError, ConfigurationError
from cdnforge.core.resolver import AssetResolver
from cdnforge.core.scanner import TemplateScanner

console = Console()


def scan_cmd(
    public_dir: Optional[Path] = typer.Option(None, "--public", "-p", help="Public asset directory."),
    views_dir: Optional[Path] = typer.Option(None, "--views", "-v", help="Template directory."),
) -> None:
    """Show each discovered reference with its artifact name and fingerprint."""
    config = build_config(public_dir=public_dir, views_dir=views_dir)
    try:
        if config.views_dir is None:
            raise ConfigurationError('missing option "views_dir"')
        scanner = TemplateScanner(
            config.views_dir,
            extensions=config.template_extensions,
            marker_name=config.marker_name,
        )
        resolver = AssetResolver(config.require_public_dir())
        markers = asyncio.run(scanner.scan())
        resolved = [resolver.resolve(marker.reference) for marker in markers]
    except CdnError as exc:
        console.print(f"[bold red]CDN error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    if not resolved:
        console.print("[dim]No asset markers found.[/dim]")
        return

    table = Table(title="Asset references")
    table.add_column("Artifact", style="cyan")
    table.add_column("Reference")
    table.add_column("MIME type", style="green")
    table.add_column("Fingerprint", justify="right")
    for asset in resolved:
        table.add_row(
            escape(asset.artifact_name),
            escape(str(asset.reference)),
            asset.mime_type,
            str(asset.fingerprint),
        )
    console.print(table)
