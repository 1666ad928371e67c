"""``cdnforge publish`` — scan templates and publish stale assets."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cdnforge.cli.options import build_config
from cdnforge.core.errors import CdnError
from cdnforge.core.orchestrator import Orchestrator
from cdnforge.core.storage import LocalStorage, RemoteStorage, S3Storage
from cdnforge.logging_setup import configure_logging
from cdnforge.models.publishing import PipelineReport, PublishStatus

console = Console()

_STATUS_STYLES: dict[PublishStatus, str] = {
    PublishStatus.PUBLISHED: "[green]published[/green]",
    PublishStatus.FRESH: "[dim]fresh[/dim]",
    PublishStatus.FAILED: "[bold red]failed[/bold red]",
}


def _print_report(report: PipelineReport) -> None:
    table = Table(title="Published assets")
    table.add_column("Artifact", style="cyan")
    table.add_column("Reference")
    table.add_column("Fingerprint", justify="right")
    table.add_column("Status", justify="center")
    table.add_column("Detail", style="dim")
    for outcome in report.outcomes:
        table.add_row(
            escape(outcome.artifact_name),
            escape(str(outcome.reference)),
            str(outcome.fingerprint),
            _STATUS_STYLES[outcome.status],
            escape(outcome.detail),
        )
    console.print(table)
    console.print(
        f"[bold]{report.published}[/bold] published, "
        f"[bold]{report.fresh}[/bold] fresh, "
        f"[bold red]{report.failed}[/bold red] failed"
    )


def publish_cmd(
    public_dir: Optional[Path] = typer.Option(None, "--public", "-p", help="Public asset directory."),
    views_dir: Optional[Path] = typer.Option(None, "--views", "-v", help="Template directory."),
    domain: Optional[str] = typer.Option(None, "--domain", help="CDN domain."),
    bucket: Optional[str] = typer.Option(None, "--bucket", help="Target bucket."),
    manifest: Optional[Path] = typer.Option(None, "--manifest", help="Manifest path."),
    force: bool = typer.Option(False, "--force", help="Ignore an existing manifest."),
    dry_run: Optional[Path] = typer.Option(
        None,
        "--dry-run",
        help="Publish into this local directory instead of object storage.",
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level."),
) -> None:
    """Publish every asset referenced from the templates.

    Assets whose remote copy is at least as new as the local files are
    skipped.  With --dry-run only the public and views directories are
    required; objects land in the given directory.  Exits non-zero on a
    fatal error or if any upload failed.
    """
    config = build_config(
        public_dir=public_dir,
        views_dir=views_dir,
        domain=domain,
        bucket=bucket,
        manifest_path=manifest,
        production=dry_run is None,
        log_level=log_level,
    )
    configure_logging(config.log_level, console=console)

    try:
        storage: RemoteStorage
        if dry_run is not None:
            storage = LocalStorage(dry_run)
        else:
            storage = S3Storage(
                config.bucket,
                endpoint=config.endpoint,
                region=config.region,
                key=config.key,
                secret=config.secret,
            )
        orchestrator = Orchestrator(config, storage)
        report = asyncio.run(orchestrator.run(force=force))
    except CdnError as exc:
        console.print(f"[bold red]CDN error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    if report.skipped:
        console.print(
            "[yellow]Manifest present; nothing to do.[/yellow] Use --force to publish anyway."
        )
        return

    _print_report(report)
    if report.failed:
        raise typer.Exit(code=1)
