"""Shared CLI plumbing: config loading, logging setup, error reporting."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from pupistry.config import PupistryConfig, load_config
from pupistry.core.errors import (
    ArtifactIntegrityError,
    CollaboratorError,
    ConfigurationError,
    PupistryError,
)
from pupistry.core.orchestrator import Lifecycle

console = Console()

DEFAULT_SETTINGS = Path("settings.yaml")


@dataclass
class CliState:
    """Options given before the subcommand."""

    config_path: Path | None = None
    verbose: bool = False


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def load_settings(ctx: typer.Context) -> PupistryConfig:
    """Load the configuration for this invocation and set up logging."""
    state: CliState = ctx.obj or CliState()
    path = state.config_path
    if path is None and DEFAULT_SETTINGS.is_file():
        path = DEFAULT_SETTINGS

    overrides = {"log_level": "DEBUG"} if state.verbose else {}
    config = load_config(path, **overrides)
    configure_logging(config.log_level)
    return config


def load_lifecycle(ctx: typer.Context) -> Lifecycle:
    return Lifecycle(load_settings(ctx))


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn lifecycle exceptions into an operator message and exit status 1."""
    try:
        yield
    except ArtifactIntegrityError as exc:
        console.print(
            Panel(
                f"{exc}",
                title="[bold red]POSSIBLE SECURITY ISSUE[/bold red]",
                border_style="red",
                padding=(1, 2),
            )
        )
        raise typer.Exit(code=1) from exc
    except ConfigurationError as exc:
        console.print(f"[bold red]Invalid configuration:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    except CollaboratorError as exc:
        console.print(f"[bold red]Step '{exc.step or 'unknown'}' failed:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    except PupistryError as exc:
        console.print(f"[bold red]Fatal:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
