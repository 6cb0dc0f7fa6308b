"""Command-line interface for Flixr."""

import asyncio
import json
import logging
import sys
from typing import Any

import click
import uvicorn

from flixr.core.config import settings
from flixr.core.exceptions import CacheBackendError, UpstreamError
from flixr.tmdb.client import (
    CATEGORY_DETAILS,
    CATEGORY_POPULAR,
    CATEGORY_RAW,
    CATEGORY_SEARCH,
)
from flixr.utils.client_factory import create_client

logger = logging.getLogger(__name__)


def parse_param(raw: str) -> tuple[str, Any]:
    """Parse one ``key=value`` option; all-digit values become integers.

    Integers match what the HTTP routes send, so the CLI and the API share
    cache entries for the same request.
    """
    if "=" not in raw:
        raise click.BadParameter(f"expected key=value, got {raw!r}")
    name, value = raw.split("=", 1)
    name = name.strip()
    if not name:
        raise click.BadParameter(f"empty parameter name in {raw!r}")
    if value.isdigit():
        return name, int(value)
    return name, value


def _quiet_logging() -> None:
    """Only warnings and errors while a command prints its own output."""
    logging.getLogger().setLevel(logging.WARNING)


@click.group()
def cli() -> None:
    """Flixr - caching movie and TV metadata backend."""
    pass


@cli.command()
@click.option(
    "--host",
    default=settings.api_host,
    help="Host to bind to",
    show_default=True,
)
@click.option(
    "--port",
    default=settings.api_port,
    type=int,
    help="Port to bind to",
    show_default=True,
)
@click.option(
    "--reload",
    is_flag=True,
    help="Enable auto-reload for development",
)
@click.option(
    "--log-level",
    default=settings.log_level.lower(),
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level",
    show_default=True,
)
def serve(host: str, port: int, reload: bool, log_level: str) -> None:
    """Start the Flixr API server."""
    logger.info(f"Starting Flixr API server on {host}:{port}")

    uvicorn.run(
        "flixr.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


@cli.command()
@click.argument("path")
@click.option(
    "--param",
    "-p",
    "params",
    multiple=True,
    help="Query parameter as key=value (repeatable)",
)
@click.option("--ttl", type=int, help="TTL override in seconds (floor still applies)")
def fetch(path: str, params: tuple[str, ...], ttl: int | None) -> None:
    """Fetch an upstream PATH through the cache and print the JSON payload."""
    _quiet_logging()

    query = dict(parse_param(raw) for raw in params)

    async def execute() -> Any:
        client = create_client()
        try:
            return await client.fetch_raw(path, query, ttl=ttl)
        finally:
            await client.close()

    try:
        payload = asyncio.run(execute())
    except UpstreamError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@cli.group()
def cache() -> None:
    """Inspect and invalidate cached upstream responses."""
    pass


@cache.command()
@click.argument("pattern")
def invalidate(pattern: str) -> None:
    """Delete cached entries whose key matches a glob PATTERN."""
    _quiet_logging()

    async def execute() -> int:
        client = create_client()
        try:
            return await client.invalidate(pattern)
        finally:
            await client.close()

    removed = asyncio.run(execute())
    click.echo(f"Removed {removed} cache entries matching {pattern}")


@cache.command()
@click.option(
    "--json",
    "output_json",
    is_flag=True,
    help="Output results as JSON",
)
def stats(output_json: bool) -> None:
    """Show cache backend status and entry counts per category."""
    _quiet_logging()

    async def execute() -> dict[str, Any]:
        client = create_client()
        try:
            result: dict[str, Any] = {
                "enabled": client.cache.enabled,
                "reachable": await client.cache.ping(),
                "namespace": client.namespace,
                "entries": {},
            }
            if result["reachable"]:
                for category in (
                    CATEGORY_SEARCH,
                    CATEGORY_DETAILS,
                    CATEGORY_POPULAR,
                    CATEGORY_RAW,
                ):
                    pattern = f"{client.namespace}:{category}:*"
                    try:
                        result["entries"][category] = await client.cache.count_keys(
                            pattern
                        )
                    except CacheBackendError as e:
                        logger.warning(f"Could not count {pattern}: {e}")
                        result["entries"][category] = None
            return result
        finally:
            await client.close()

    result = asyncio.run(execute())

    if output_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.echo(f"Cache enabled:   {result['enabled']}")
    click.echo(f"Cache reachable: {result['reachable']}")
    click.echo(f"Namespace:       {result['namespace']}")
    for category, count in result["entries"].items():
        click.echo(f"  {category:<8} {count if count is not None else 'n/a'}")


if __name__ == "__main__":
    cli()
