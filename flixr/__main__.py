"""Allow running as ``python -m flixr``."""

from flixr.cli.main import cli

if __name__ == "__main__":
    cli()
