"""``pupistry push [VERSION]`` — sign and publish an artifact to the store."""

from __future__ import annotations

from typing import Optional

import typer
from rich.panel import Panel

from pupistry.cli.common import console, handle_errors, load_lifecycle
from pupistry.models.outcomes import PublishOutcome


def push_cmd(
    ctx: typer.Context,
    version: Optional[str] = typer.Argument(
        None,
        help="Version to publish. Defaults to the latest local build.",
    ),
) -> None:
    """Sign the artifact, upload it and point the remote latest at it."""
    with handle_errors():
        lifecycle = load_lifecycle(ctx)
        result = lifecycle.publisher.publish(version)

    if result.outcome == PublishOutcome.ALREADY_PUBLISHED:
        console.print(
            f"[bold yellow]Artifact {result.version} is already the published latest, "
            "nothing to do.[/bold yellow]"
        )
        return

    if result.readback_ok:
        readback = "[green]ok[/green]"
    else:
        readback = "[red]FAILED - check store permissions[/red]"

    console.print(
        Panel(
            "\n".join([
                "[bold green]Publish complete![/bold green]",
                "",
                f"[bold]Version:[/bold]   {result.version}",
                f"[bold]Signed:[/bold]    {'yes' if result.signed else '[yellow]NO[/yellow]'}",
                f"[bold]Read-back:[/bold] {readback}",
            ]),
            title="[bold]Published[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
