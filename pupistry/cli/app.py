"""Main Typer application — imports and registers all CLI commands.

Entry point: ``pupistry`` (configured via pyproject.toml console_scripts).

Commands: build, push, fetch, install, status, prune, keygen, bootstrap.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel

from pupistry.bridge.signer import generate_keypair
from pupistry.cli.commands.build import build_cmd
from pupistry.cli.commands.fetch import fetch_cmd
from pupistry.cli.commands.install import install_cmd
from pupistry.cli.commands.push import push_cmd
from pupistry.cli.commands.status import status_cmd
from pupistry.cli.common import CliState, console, handle_errors, load_lifecycle, load_settings
from pupistry.core.bootstrap import render_agent_bootstrap

app = typer.Typer(
    name="pupistry",
    help="Pupistry: build, sign, publish and install Puppet code artifacts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Settings file. Defaults to ./settings.yaml when present.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    ctx.obj = CliState(config_path=config, verbose=verbose)


# Register subcommands
app.command(name="build", help="Fetch the Puppet code and build a new artifact.")(build_cmd)
app.command(name="push", help="Sign and publish an artifact to the store.")(push_cmd)
app.command(name="fetch", help="Download an artifact into the local cache.")(fetch_cmd)
app.command(name="install", help="Fetch, verify and install an artifact.")(install_cmd)
app.command(name="status", help="Show local, published and installed versions.")(status_cmd)


@app.command(name="prune", help="Delete cached artifacts that are no longer needed.")
def prune_cmd(ctx: typer.Context) -> None:
    """Remove superseded versions from the local cache.

    The local latest and the installed version are kept.  Nothing in the
    store is ever deleted.
    """
    with handle_errors():
        lifecycle = load_lifecycle(ctx)
        installed = lifecycle.installer.installed_version()
        pruned = lifecycle.cache.prune(keep={installed} if installed else set())

    if not pruned:
        console.print("[dim]Nothing to prune.[/dim]")
        return
    for version in pruned:
        console.print(f"  [red]-[/red] {version}")
    console.print(f"[bold]Pruned {len(pruned)} cached artifact(s).[/bold]")


@app.command(name="keygen", help="Generate an Ed25519 signing key-pair.")
def keygen_cmd() -> None:
    """Print a new key-pair for general.signing_key / general.verify_key."""
    private_key, public_key = generate_keypair()
    console.print(
        Panel(
            "\n".join([
                f"[bold]signing_key:[/bold] {private_key}",
                f"[bold]verify_key:[/bold]  {public_key}",
                "",
                "[dim]Keep signing_key on build machines only. Agents need verify_key.[/dim]",
            ]),
            title="[bold]New Signing Keys[/bold]",
            border_style="cyan",
            padding=(1, 2),
        )
    )


@app.command(name="bootstrap", help="Print agent settings generated from this machine's config.")
def bootstrap_cmd(
    ctx: typer.Context,
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the settings to this file instead of stdout.",
    ),
) -> None:
    """Render the settings.yaml an agent needs to fetch and verify artifacts."""
    with handle_errors():
        rendered = render_agent_bootstrap(load_settings(ctx))

    if output is None:
        typer.echo(rendered, nl=False)
        return
    output.write_text(rendered, encoding="utf-8")
    console.print(f"[green]Agent settings written to {output}[/green]")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
