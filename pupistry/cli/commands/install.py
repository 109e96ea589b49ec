"""``pupistry install [VERSION]`` — fetch, unpack, verify and install.

Fetches the requested version (or the published latest), unpacks it into a
scratch directory, verifies its signature, then replaces the contents of
the installation target with it.
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.panel import Panel

from pupistry.cli.common import console, handle_errors, load_lifecycle
from pupistry.models.outcomes import FetchOutcome


def install_cmd(
    ctx: typer.Context,
    version: Optional[str] = typer.Argument(
        None,
        help="Version to install. Defaults to the published latest.",
    ),
    offline: bool = typer.Option(
        False,
        "--offline",
        help="Do not contact the store; install the latest cached version.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Reinstall even if the version is already installed.",
    ),
) -> None:
    """Install an artifact into the configured agent.puppetcode directory."""
    with handle_errors():
        lifecycle = load_lifecycle(ctx)
        installer = lifecycle.installer

        if offline:
            resolved = version or installer.current_version()
            if resolved is None:
                console.print("[bold red]No artifact is cached locally.[/bold red]")
                raise typer.Exit(code=1)
        else:
            result = lifecycle.fetcher.fetch(version)
            if result.outcome == FetchOutcome.NOT_FOUND or result.version is None:
                console.print("[bold red]There is no artifact that can be fetched.[/bold red]")
                raise typer.Exit(code=1)
            resolved = result.version

        if not force and installer.installed_version() == resolved:
            console.print(f"[cyan]Artifact {resolved} is already installed, nothing to do.[/cyan]")
            return

        target = installer.deploy(resolved)

    console.print(
        Panel(
            "\n".join([
                "[bold green]Install complete![/bold green]",
                "",
                f"[bold]Version:[/bold] {resolved}",
                f"[bold]Target:[/bold]  {target}",
            ]),
            title="[bold]Installed[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
