"""Tests for configuration loading."""

from __future__ import annotations

import logging
import pathlib

import pytest

from backend.config.app import Config
from backend.lib.exceptions import ConfigurationError


@pytest.fixture
def no_file(tmp_path: pathlib.Path) -> str:
    return str(tmp_path / "missing.toml")


def load(environ: dict[str, str], tmp_path: pathlib.Path) -> Config:
    # An empty TOML file keeps a developer's config/app.toml out of the tests.
    config_file = tmp_path / "app.toml"
    config_file.write_text("", "utf-8")
    return Config.load(str(config_file), environ)


def test_defaults(tmp_path: pathlib.Path) -> None:
    config = load({}, tmp_path)

    assert config.db.retry.attempts == 10
    assert config.db.retry.delay == 5.0
    assert config.redis.retry.attempts == 3
    assert config.redis.retry.delay == 3.0
    assert config.cache.ttl == 300
    assert config.db.pool_max_size == 20
    assert config.db.connect_timeout == 5.0
    assert config.collections == {"users": "users"}
    assert config.cache_namespace == "backend:cache"


def test_environment_overrides(tmp_path: pathlib.Path) -> None:
    config = load(
        {
            "DB_HOST": "postgres",
            "DB_PORT": "6543",
            "DB_NAME": "app",
            "DB_USER": "svc",
            "DB_PASSWORD": "hunter2",
            "DB_POOL_MAX_SIZE": "5",
            "DATABASE_RETRY_ATTEMPTS": "4",
            "DATABASE_RETRY_DELAY": "250",
            "REDIS_HOST": "cache",
            "REDIS_PORT": "6380",
            "REDIS_RETRY_DELAY": "1500",
            "CACHE_TTL": "60",
            "PORT": "8080",
            "DEBUG": "true",
            "LOG_LEVEL": "warning",
        },
        tmp_path,
    )

    assert config.db.host == "postgres"
    assert config.db.port == 6543
    assert config.db.name == "app"
    assert config.db.resolved_password == "hunter2"
    assert config.db.pool_max_size == 5
    assert config.db.retry.attempts == 4
    assert config.db.retry.delay == 0.25
    assert config.redis.host == "cache"
    assert config.redis.port == 6380
    assert config.redis.retry.attempts == 3
    assert config.redis.retry.delay == 1.5
    assert config.cache.ttl == 60
    assert config.server.port == 8080
    assert config.debug is True
    assert config.logging.level == logging.WARNING


def test_retry_policies_are_independent(tmp_path: pathlib.Path) -> None:
    config = load({"REDIS_RETRY_ATTEMPTS": "7"}, tmp_path)

    assert config.redis.retry.attempts == 7
    assert config.db.retry.attempts == 10


@pytest.mark.parametrize(
    ("environ", "expected"),
    [
        ({"REDIS_RETRY_DELAY": "1500"}, (3, 1.5)),
        ({"REDIS_RETRY_ATTEMPTS": "7"}, (7, 3.0)),
        ({"DATABASE_RETRY_DELAY": "100"}, (3, 3.0)),
    ],
)
def test_partial_cache_retry_override_keeps_cache_defaults(
    environ: dict[str, str], expected: tuple[int, float], tmp_path: pathlib.Path
) -> None:
    retry = load(environ, tmp_path).redis.retry

    assert (retry.attempts, retry.delay) == expected


def test_partial_cache_retry_in_toml_keeps_cache_defaults(tmp_path: pathlib.Path) -> None:
    config_file = tmp_path / "app.toml"
    config_file.write_text("[redis.retry]\ndelay = 1.0\n\n[db.retry]\ndelay = 2.0\n", "utf-8")

    config = Config.load(str(config_file), {})

    assert config.redis.retry.attempts == 3
    assert config.redis.retry.delay == 1.0
    assert config.db.retry.attempts == 10
    assert config.db.retry.delay == 2.0


def test_toml_file_is_overridden_by_environment(tmp_path: pathlib.Path) -> None:
    config_file = tmp_path / "app.toml"
    config_file.write_text(
        '[db]\nhost = "from-file"\nname = "filedb"\n\n[db.retry]\nattempts = 2\n',
        "utf-8",
    )

    config = Config.load(str(config_file), {"DB_HOST": "from-env"})

    assert config.db.host == "from-env"
    assert config.db.name == "filedb"
    assert config.db.retry.attempts == 2


@pytest.mark.parametrize(
    "environ",
    [
        {"DATABASE_RETRY_ATTEMPTS": "0"},
        {"DATABASE_RETRY_ATTEMPTS": "ten"},
        {"DATABASE_RETRY_DELAY": "soon"},
        {"DB_PORT": "70000"},
        {"LOG_LEVEL": "chatty"},
    ],
)
def test_invalid_values_are_rejected(
    environ: dict[str, str], tmp_path: pathlib.Path
) -> None:
    with pytest.raises(ConfigurationError):
        load(environ, tmp_path)


def test_unknown_keys_are_rejected(tmp_path: pathlib.Path) -> None:
    config_file = tmp_path / "app.toml"
    config_file.write_text("[db]\nhots = 'typo'\n", "utf-8")

    with pytest.raises(ConfigurationError):
        Config.load(str(config_file), {})


def test_explicit_missing_file_is_an_error(no_file: str) -> None:
    with pytest.raises(ConfigurationError):
        Config.load(no_file, {})


def test_config_file_from_environment(tmp_path: pathlib.Path) -> None:
    config_file = tmp_path / "custom.toml"
    config_file.write_text('name = "Orders API"\n', "utf-8")

    config = Config.load(environ={"APP_CONFIG_FILE": str(config_file)})

    assert config.slug == "orders-api"
    assert config.cache_namespace == "orders-api:cache"
    assert config.metrics_prefix == "orders_api"


def test_redacted_dump_masks_the_password(tmp_path: pathlib.Path) -> None:
    config = load({"DB_PASSWORD": "hunter2"}, tmp_path)

    assert config.to_dict(redact=True)["db"]["password"] == "********"
    assert config.to_dict()["db"]["password"] == "hunter2"
    assert config.to_dict(redact=True)["redis"]["host"] == "localhost"
