"""``pupistry status`` — show local, published and installed versions."""

from __future__ import annotations

import typer
from rich.table import Table

from pupistry.cli.common import console, handle_errors, load_lifecycle
from pupistry.core.errors import ConfigurationError, StorageError


def _show(version: str | None) -> str:
    return f"[green]{version}[/green]" if version else "[dim]none[/dim]"


def status_cmd(ctx: typer.Context) -> None:
    """Compare the local latest (built or fetched), the published latest and the installed version.

    The store is optional here: if it cannot be reached the published column
    reads "unavailable" instead of failing.
    """
    with handle_errors():
        lifecycle = load_lifecycle(ctx)
        local = lifecycle.installer.current_version()
        installed = lifecycle.installer.installed_version()
        try:
            published = _show(lifecycle.fetcher.latest_version())
        except (ConfigurationError, StorageError) as exc:
            published = f"[yellow]unavailable[/yellow] [dim]({exc})[/dim]"

    table = Table(title="Artifact Status")
    table.add_column("Where", style="cyan")
    table.add_column("Version")
    table.add_row("Local latest", _show(local))
    table.add_row("Published latest", published)
    table.add_row("Installed", _show(installed))
    console.print(table)

    cached = lifecycle.cache.list_versions()
    if cached:
        console.print(f"[dim]{len(cached)} version(s) cached in {lifecycle.cache.artifacts_dir}[/dim]")
