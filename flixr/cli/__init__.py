"""Command-line interface for Flixr."""

from flixr.cli.main import cli

__all__ = ["cli"]
