from __future__ import annotations

import logging
import logging.handlers
import os
import pathlib
import sys
from typing import TYPE_CHECKING

from litestar.config.compression import CompressionConfig
from litestar.config.cors import CORSConfig
from litestar.logging.config import LoggingConfig
from litestar.middleware.logging import LoggingMiddlewareConfig
from litestar.openapi.config import OpenAPIConfig
from litestar.openapi.plugins import (
    JsonRenderPlugin,
    ScalarRenderPlugin,
    SwaggerRenderPlugin,
)
from litestar.plugins.prometheus import PrometheusConfig
from msgspec import Struct

from backend import __version__ as app_version

from .app import APP_CONFIG

if TYPE_CHECKING:
    from typing import Any, Final, Self

    from .app import Config

__all__ = ("LITESTAR_CONFIG", "LitestarConfig", "get_logging_config")


RESET: Final = "\x1b[0m"
LEVEL_COLOURS: Final = {
    logging.DEBUG: "\x1b[40;1m",
    logging.INFO: "\x1b[34;1m",
    logging.WARNING: "\x1b[33;1m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[41m",
}


def running_in_container() -> bool:
    """Whether the process runs inside a Docker container."""
    if os.getenv("IN_DOCKER") or pathlib.Path("/.dockerenv").exists():
        return True

    cgroup = pathlib.Path("/proc/self/cgroup")
    return cgroup.is_file() and "docker" in cgroup.read_text("utf-8", errors="ignore")


def stream_supports_colour(stream: Any) -> bool:
    if not (hasattr(stream, "isatty") and stream.isatty()):
        # Container logs are usually collected without a tty but still render ANSI.
        return sys.platform != "win32" and running_in_container()

    if sys.platform == "win32":
        return "WT_SESSION" in os.environ or "ANSICON" in os.environ

    return os.environ.get("TERM") != "dumb"


class ColourFormatter(logging.Formatter):
    """Formatter colouring the timestamp, level, logger name and tracebacks."""

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self._formatters = {
            level: logging.Formatter(
                f"\x1b[30;1m%(asctime)s{RESET} {colour}%(levelname)-8s{RESET} "
                f"\x1b[35m%(name)s{RESET} %(message)s",
                self.datefmt,
            )
            for level, colour in LEVEL_COLOURS.items()
        }

    def format(self, record: logging.LogRecord) -> str:
        formatter = self._formatters.get(record.levelno, self._formatters[logging.DEBUG])
        if not record.exc_info:
            return formatter.format(record)

        record.exc_text = f"\x1b[31m{formatter.formatException(record.exc_info)}{RESET}"
        try:
            return formatter.format(record)
        finally:
            record.exc_text = None


def get_logging_config(config: Config) -> LoggingConfig:
    """Build the logging configuration shared by the bootstrap and the app.

    Parameters
    ----------
    config : Config
        The service configuration.

    Returns
    -------
    LoggingConfig
        Stream and rotating file handlers on the root logger, with the
        Granian loggers routed to the stream only.
    """
    logging_path = pathlib.Path("./logs/")
    logging_path.mkdir(exist_ok=True)
    formatter = (
        "colour" if stream_supports_colour(logging.StreamHandler().stream) else "standard"
    )
    level = logging.getLevelName(config.logging.level)

    return LoggingConfig(
        formatters={
            "standard": {
                "format": "[{asctime}] [{levelname}] {name}: {message}",
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "style": "{",
            },
            "colour": {
                "()": ColourFormatter,
            },
        },
        handlers={
            "file": {
                "class": logging.handlers.RotatingFileHandler,
                "filename": logging_path / f"{config.slug}.log",
                "maxBytes": 32 * 1024 * 1024,
                "backupCount": 5,
                "encoding": "utf-8",
                "formatter": "standard",
            },
            "stream": {
                "class": logging.StreamHandler,
                "formatter": formatter,
            },
        },
        loggers={
            "litestar": {
                "propagate": False,
                "level": level,
                "handlers": ["stream", "file"],
            },
            "_granian": {
                "propagate": False,
                "level": config.logging.asgi_error_level,
                "handlers": ["stream"],
            },
            "granian.access": {
                "propagate": False,
                "level": config.logging.asgi_access_level,
                "handlers": ["stream"],
            },
        },
        root={
            "level": level,
            "handlers": ["stream", "file"],
        },
        log_exceptions="debug",
    )


class LitestarConfig(Struct, frozen=True):
    """Litestar side configuration derived from the service configuration."""

    cors: CORSConfig
    compression: CompressionConfig
    openapi: OpenAPIConfig
    logging: LoggingConfig
    logging_middleware: LoggingMiddlewareConfig
    prometheus: PrometheusConfig

    @classmethod
    def from_app_config(cls, config: Config) -> Self:
        return cls(
            cors=CORSConfig(**config.cors.to_dict()),
            compression=CompressionConfig(**config.compression.to_dict()),
            openapi=OpenAPIConfig(
                title=config.name,
                version=app_version,
                description="Service reading collections through a Redis cache",
                use_handler_docstrings=True,
                # The first plugin is rendered at /docs, all of them at /docs/<name>.
                render_plugins=[
                    ScalarRenderPlugin(),
                    JsonRenderPlugin(),
                    SwaggerRenderPlugin(),
                ],
                path="/docs",
            ),
            logging=get_logging_config(config),
            logging_middleware=LoggingMiddlewareConfig(
                **config.logging.middleware.to_dict()
            ),
            prometheus=PrometheusConfig(
                app_name=config.slug,
                prefix=config.metrics_prefix,
                group_path=True,
                exclude=["/metrics"],
            ),
        )


LITESTAR_CONFIG: Final = LitestarConfig.from_app_config(APP_CONFIG)
"""Configuration for litestar."""
