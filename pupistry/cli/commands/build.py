"""``pupistry build`` — fetch the Puppet code and build a new artifact."""

from __future__ import annotations

import typer
from rich.panel import Panel

from pupistry.cli.common import console, handle_errors, load_lifecycle
from pupistry.models.outcomes import BuildOutcome


def build_cmd(ctx: typer.Context) -> None:
    """Build an artifact from the configured source into the local cache.

    Rebuilding content that is already cached is reported and exits cleanly.
    """
    with handle_errors():
        lifecycle = load_lifecycle(ctx)
        result = lifecycle.builder.build()

    if result.outcome == BuildOutcome.UNCHANGED:
        console.print(
            f"[bold yellow]Artifact {result.version} has already been built, nothing to do.[/bold yellow]"
        )
        console.print('[dim]Did you remember to "git push" your module changes?[/dim]')
        return

    console.print(
        Panel(
            "\n".join([
                "[bold green]Build complete![/bold green]",
                "",
                f"[bold]Version:[/bold] {result.version}",
                "",
                "[dim]Run pupistry push to sign and publish it.[/dim]",
            ]),
            title="[bold]New Artifact[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
