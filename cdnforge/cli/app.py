"""Main Typer application — registers all CLI commands.

Entry point: ``cdnforge`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from cdnforge.cli.commands.publish import publish_cmd
from cdnforge.cli.commands.render import render_cmd
from cdnforge.cli.commands.scan import scan_cmd

app = typer.Typer(
    name="cdnforge",
    help="cdnforge: publish template-referenced assets to a CDN.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="publish", help="Scan templates and publish stale assets.")(publish_cmd)
app.command(name="scan", help="List asset references found in templates.")(scan_cmd)
app.command(name="render", help="Render the tag for an asset or bundle.")(render_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
