"""Pupistry CLI — Typer-based command-line interface.

Provides the ``pupistry`` command with subcommands for building, publishing,
fetching and installing artifacts.

All output uses Rich for formatted terminal display.
"""
