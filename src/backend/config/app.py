from __future__ import annotations

import logging
import os
import pathlib
from typing import TYPE_CHECKING, Annotated, Literal

import msgspec
from litestar.data_extractors import RequestExtractorField, ResponseExtractorField
from msgspec import Meta, field, toml
from redis.asyncio import Redis

from backend.lib.config import Struct
from backend.lib.exceptions import ConfigurationError
from backend.utils.text import slugify

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from typing import Any, Final, Self

__all__ = ("APP_CONFIG", "Config", "load_config")

type Port = Annotated[int, Meta(ge=1, le=65535)]
type Seconds = Annotated[float, Meta(ge=0)]
type PositiveSeconds = Annotated[float, Meta(gt=0)]
type CORSAllowedMethod = Literal[
    "GET", "POST", "DELETE", "PATCH", "PUT", "HEAD", "TRACE", "OPTIONS", "*"
]

DEFAULT_CONFIG_FILE: Final = "config/app.toml"


def read_secret(filename: str) -> str | None:
    path = pathlib.Path(f"secrets/{filename}").resolve()

    if not path.exists():
        return None

    return path.read_text("utf-8").strip()


class RetryConfig(Struct):
    attempts: Annotated[int, Meta(ge=1)] = field(default=10)
    delay: Seconds = field(default=5.0)


class CacheRetryConfig(RetryConfig):
    # The cache is optional, so it gives up sooner than the store.
    attempts: Annotated[int, Meta(ge=1)] = field(default=3)
    delay: Seconds = field(default=3.0)


class DatabaseConfig(Struct):
    secret_fields = frozenset({"password"})

    host: str = field(default="localhost")
    port: Port = field(default=5432)
    name: str = field(default="mydatabase")
    user: str = field(default="myuser")
    password: str | None = field(default=None)
    pool_min_size: Annotated[int, Meta(ge=0)] = field(default=1)
    pool_max_size: Annotated[int, Meta(ge=1)] = field(default=20)
    idle_timeout: Seconds = field(default=30.0)
    connect_timeout: PositiveSeconds = field(default=5.0)
    command_timeout: PositiveSeconds = field(default=30.0)
    retry: RetryConfig = field(default_factory=RetryConfig)

    @property
    def resolved_password(self) -> str | None:
        # None lets asyncpg fall back to PGPASSWORD / .pgpass.
        if self.password is not None:
            return self.password
        return read_secret("postgres_password.txt")


class RedisConfig(Struct):
    host: str = field(default="localhost")
    port: Port = field(default=6379)
    db: Annotated[int, Meta(ge=0)] = field(default=0)
    connect_timeout: PositiveSeconds = field(default=5.0)
    socket_timeout: PositiveSeconds = field(default=5.0)
    socket_keepalive: bool = field(default=True)
    health_check_interval: int = field(default=5)
    retry: CacheRetryConfig = field(default_factory=CacheRetryConfig)

    def create_client(self) -> Redis[bytes]:
        return Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            socket_connect_timeout=self.connect_timeout,
            socket_timeout=self.socket_timeout,
            socket_keepalive=self.socket_keepalive,
            health_check_interval=self.health_check_interval,
            decode_responses=False,
        )


class CacheConfig(Struct):
    ttl: Annotated[int, Meta(ge=1)] = field(default=300)
    namespace: str | None = field(default=None)


class HealthConfig(Struct):
    probe_timeout: PositiveSeconds = field(default=5.0)


class ShutdownConfig(Struct):
    release_timeout: PositiveSeconds = field(default=10.0)


class ServerConfig(Struct):
    host: str = field(
        default_factory=lambda: "0.0.0.0" if os.getenv("IN_DOCKER") else "127.0.0.1"  # noqa: S104
    )
    port: Port = field(default=5000)


class LoggingMiddlewareConfig(Struct):
    exclude: str = field(default=r"^/(health|ready|metrics)$")
    exclude_opt_key: str = field(default="exclude_from_logging_middleware")
    include_compressed_body: bool = field(default=False)
    logger_name: str = field(default="backend.http")
    request_headers_to_obfuscate: set[str] = field(
        default_factory=lambda: {"Authorization", "X-API-KEY", "Cookie"}
    )
    response_headers_to_obfuscate: set[str] = field(
        default_factory=lambda: {"Set-Cookie"}
    )
    request_log_message: str = field(default="HTTP Request")
    response_log_message: str = field(default="HTTP Response")
    request_log_fields: list[RequestExtractorField] = field(
        default_factory=lambda: ["path", "method", "query", "path_params"]
    )
    response_log_fields: list[ResponseExtractorField] = field(
        default_factory=lambda: ["status_code"]
    )


class LoggingConfig(Struct):
    level: int = field(default=logging.INFO)
    asgi_access_level: int = field(default=logging.WARNING)
    asgi_error_level: int = field(default=logging.INFO)
    middleware: LoggingMiddlewareConfig = field(default_factory=LoggingMiddlewareConfig)


class CORSConfig(Struct):
    allow_origins: list[str] = field(default_factory=lambda: ["*"])
    allow_methods: list[CORSAllowedMethod] = field(default_factory=lambda: ["*"])
    allow_headers: list[str] = field(default_factory=lambda: ["*"])
    allow_credentials: bool = field(default=False)
    max_age: int = field(default=600)


class CompressionConfig(Struct):
    backend: Literal["gzip"] = field(default="gzip")
    minimum_size: int = field(default=500)
    gzip_compress_level: int = field(default=9)
    exclude: list[str] | None = field(default_factory=lambda: ["/docs", "/metrics"])


class Config(Struct):
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    shutdown: ShutdownConfig = field(default_factory=ShutdownConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    cors: CORSConfig = field(default_factory=CORSConfig)
    compression: CompressionConfig = field(default_factory=CompressionConfig)
    collections: dict[str, str] = field(default_factory=lambda: {"users": "users"})
    debug: bool = field(default=False)
    name: str = field(default="backend")
    base_url: str = field(default="/api")

    @classmethod
    def load(
        cls, filename: str | None = None, environ: Mapping[str, str] | None = None
    ) -> Self:
        """Load the configuration from an optional TOML file and the environment.

        Parameters
        ----------
        filename : str, optional
            Path of the TOML file. Falls back to ``APP_CONFIG_FILE`` and then to
            ``config/app.toml``; only an explicitly named file must exist.
        environ : Mapping[str, str], optional
            Environment to read overrides from (the default is ``os.environ``).

        Returns
        -------
        Config
            The validated configuration.

        Raises
        ------
        ConfigurationError
            If the file is missing or any value fails validation.
        """
        environ = os.environ if environ is None else environ
        explicit = filename or environ.get("APP_CONFIG_FILE")
        config_file = pathlib.Path(explicit or DEFAULT_CONFIG_FILE).resolve()

        data: dict[str, Any] = {}
        if config_file.exists():
            try:
                data = toml.decode(config_file.read_bytes())
            except msgspec.DecodeError as exc:
                msg = f"Invalid config file {str(config_file)!r}: {exc}"
                raise ConfigurationError(msg) from exc
        elif explicit:
            msg = f"Config file not found at {str(config_file)!r}"
            raise ConfigurationError(msg)

        for key, (path, convert) in ENV_OVERRIDES.items():
            raw = environ.get(key)
            if raw is None or raw == "":
                continue
            try:
                value = convert(raw)
            except (ValueError, KeyError) as exc:
                msg = f"Invalid value for {key}: {raw!r}"
                raise ConfigurationError(msg) from exc
            _set_path(data, path, value)

        try:
            return msgspec.convert(data, type=cls, strict=False)
        except msgspec.ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc

    @property
    def slug(self) -> str:
        return slugify(self.name)

    @property
    def metrics_prefix(self) -> str:
        return slugify(self.name, separator="_")

    @property
    def cache_namespace(self) -> str:
        return self.cache.namespace or f"{self.slug}:cache"


def _from_millis(raw: str) -> float:
    return float(raw) / 1000


def _log_level(raw: str) -> int:
    if raw.isdigit():
        return int(raw)
    return logging.getLevelNamesMapping()[raw.upper()]


def _set_path(data: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    *parents, leaf = path
    for part in parents:
        data = data.setdefault(part, {})
    data[leaf] = value


ENV_OVERRIDES: Final[dict[str, tuple[tuple[str, ...], Callable[[str], Any]]]] = {
    "DB_HOST": (("db", "host"), str),
    "DB_PORT": (("db", "port"), str),
    "DB_NAME": (("db", "name"), str),
    "DB_USER": (("db", "user"), str),
    "DB_PASSWORD": (("db", "password"), str),
    "DB_POOL_MIN_SIZE": (("db", "pool_min_size"), str),
    "DB_POOL_MAX_SIZE": (("db", "pool_max_size"), str),
    "DB_IDLE_TIMEOUT": (("db", "idle_timeout"), _from_millis),
    "DB_CONNECT_TIMEOUT": (("db", "connect_timeout"), _from_millis),
    "DB_COMMAND_TIMEOUT": (("db", "command_timeout"), _from_millis),
    # Retry delays are milliseconds, matching existing deployment manifests.
    "DATABASE_RETRY_ATTEMPTS": (("db", "retry", "attempts"), str),
    "DATABASE_RETRY_DELAY": (("db", "retry", "delay"), _from_millis),
    "REDIS_HOST": (("redis", "host"), str),
    "REDIS_PORT": (("redis", "port"), str),
    "REDIS_CONNECT_TIMEOUT": (("redis", "connect_timeout"), _from_millis),
    "REDIS_RETRY_ATTEMPTS": (("redis", "retry", "attempts"), str),
    "REDIS_RETRY_DELAY": (("redis", "retry", "delay"), _from_millis),
    "CACHE_TTL": (("cache", "ttl"), str),
    "HOST": (("server", "host"), str),
    "PORT": (("server", "port"), str),
    "DEBUG": (("debug",), str),
    "LOG_LEVEL": (("logging", "level"), _log_level),
}
"""Environment variables recognised as overrides, mapped to config paths."""


def load_config() -> Config:
    """Load the configuration from the process environment."""
    return Config.load()


APP_CONFIG: Final = load_config()
"""The service configuration."""
