from pathlib import Path

from soma.config import (
    DEFAULT_DATABASE_URL,
    load_config,
    load_runtime_env,
    resolve_app_port,
)


def test_defaults_apply_for_empty_environment() -> None:
    config = load_config({"UNRELATED": "1"})

    assert config.database.url == DEFAULT_DATABASE_URL
    assert config.logging.level == "INFO"
    assert config.source_catalog.base_url == "https://music.yandex.ru"
    assert config.source_catalog.timeout_ms == 10_000
    assert config.spotify.request_timeout_s == 10
    assert config.transfer.batch_delay_ms == 200
    assert config.transfer.max_concurrency == 4
    assert config.transfer.handle_ttl_seconds == 3600


def test_values_are_parsed_and_bounded() -> None:
    config = load_config(
        {
            "SOURCE_CATALOG_BASE_URL": "https://music.yandex.com/",
            "SOURCE_CATALOG_TIMEOUT_MS": "5",
            "TRANSFER_BATCH_DELAY_MS": "-10",
            "TRANSFER_MAX_CONCURRENCY": "not-a-number",
        }
    )

    assert config.source_catalog.base_url == "https://music.yandex.com"
    assert config.source_catalog.timeout_ms == 100
    assert config.transfer.batch_delay_ms == 0
    assert config.transfer.max_concurrency == 4


def test_resolve_app_port_falls_back_for_invalid_values() -> None:
    assert resolve_app_port({"APP_PORT": "9000"}) == 9000
    assert resolve_app_port({"APP_PORT": "99999"}) == 65535
    assert resolve_app_port({"APP_PORT": "abc"}) == 8080


def test_environment_overrides_env_file(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("LOG_LEVEL=WARNING\nDATABASE_URL='sqlite:///file.db'\n", encoding="utf-8")

    env = load_runtime_env(env_file=env_file, base_env={"LOG_LEVEL": "DEBUG"})

    assert env["LOG_LEVEL"] == "DEBUG"
    assert env["DATABASE_URL"] == "sqlite:///file.db"
