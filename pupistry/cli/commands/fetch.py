"""``pupistry fetch [VERSION]`` — download an artifact into the local cache."""

from __future__ import annotations

from typing import Optional

import typer

from pupistry.cli.common import console, handle_errors, load_lifecycle
from pupistry.models.outcomes import FetchOutcome


def fetch_cmd(
    ctx: typer.Context,
    version: Optional[str] = typer.Argument(
        None,
        help="Version to fetch. Defaults to the published latest.",
    ),
) -> None:
    """Download an artifact and its manifest; already cached versions are skipped."""
    with handle_errors():
        lifecycle = load_lifecycle(ctx)
        result = lifecycle.fetcher.fetch(version)

    if result.outcome == FetchOutcome.NOT_FOUND:
        wanted = result.version or "latest"
        console.print(f"[bold red]No artifact found in the store for {wanted}.[/bold red]")
        raise typer.Exit(code=1)

    if result.outcome == FetchOutcome.CACHED:
        console.print(f"[cyan]Artifact {result.version} is already cached.[/cyan]")
    else:
        console.print(f"[bold green]Fetched artifact {result.version}.[/bold green]")
