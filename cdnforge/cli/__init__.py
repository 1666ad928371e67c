"""cdnforge CLI — Typer-based command interface."""
