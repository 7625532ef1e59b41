from __future__ import annotations

import asyncio
import logging

import click
import msgspec

from backend.lib.exceptions import ApplicationError

__all__ = ("backend_group",)


LOGGER = logging.getLogger(__name__)


@click.group(name="backend")
def backend_group() -> None:
    """Commands for running the backend service."""


@backend_group.command()
@click.option("--host", type=str, default=None, help="Address to bind, overrides HOST.")
@click.option("--port", type=int, default=None, help="Port to bind, overrides PORT.")
def serve(host: str | None, port: int | None) -> None:
    """Connect the database and cache, then serve HTTP until terminated.

    Exits with 1 when the database cannot be reached within its retry budget
    or the configuration is invalid.
    """
    try:
        # Importing the config validates the environment before anything connects.
        from backend.config import APP_CONFIG, LITESTAR_CONFIG  # noqa: PLC0415
    except ApplicationError as exc:
        click.echo(f"Invalid configuration: {exc}", err=True)
        raise SystemExit(1) from exc

    from backend.server.runner import serve as run  # noqa: PLC0415

    LITESTAR_CONFIG.logging.configure()

    config = APP_CONFIG
    if host is not None or port is not None:
        config = msgspec.structs.replace(
            config,
            server=msgspec.structs.replace(
                config.server,
                host=config.server.host if host is None else host,
                port=config.server.port if port is None else port,
            ),
        )

    try:
        exit_code = asyncio.run(run(config))
    except ApplicationError:
        LOGGER.critical("Unhandled startup error", exc_info=True)
        exit_code = 1

    raise SystemExit(exit_code)


@backend_group.command(name="show-config")
def show_config() -> None:
    """Print the resolved configuration with secrets masked."""
    from backend.config import APP_CONFIG  # noqa: PLC0415

    data = APP_CONFIG.to_dict(redact=True)
    click.echo(msgspec.json.format(msgspec.json.encode(data), indent=2).decode())
