from pathlib import Path

import pytest

from linearkit.domain.errors import ConfigError
from linearkit.infrastructure.config import settings
from linearkit.infrastructure.config.settings import (
    build_toolkit_config,
    get_config,
    load_configuration,
    set_config_for_testing,
)


def test_defaults_with_only_api_key(monkeypatch):
    monkeypatch.setenv("LINEAR_API_KEY", "lin_env_key")

    config = build_toolkit_config()

    assert config.executor.api_key == "lin_env_key"
    assert config.executor.endpoint == "https://api.linear.app/graphql"
    assert config.executor.timeout == 30.0
    assert config.executor.retry_attempts == 3
    assert config.executor.retry_delay == 1.0
    assert config.cache.enabled is True
    assert config.cache.ttl == 300
    assert config.cache.max_size == 1000
    assert config.session.persistence_type == "memory"
    assert config.session.cache_ttl == 3600
    assert config.session.persistence_dir == Path(".linear")
    assert config.batch_size == 50


def test_missing_api_key_fails_validation():
    with pytest.raises(ConfigError, match="LINEAR_API_KEY is required"):
        build_toolkit_config()


def test_every_invalid_setting_is_reported():
    set_config_for_testing({
        "LINEAR_API_KEY": "k",
        "LINEAR_API_ENDPOINT": "ftp://nope",
        "REQUEST_TIMEOUT": 0,
        "SESSION_PERSISTENCE": "redis",
        "BATCH_SIZE": -1,
    })

    with pytest.raises(ConfigError) as exc_info:
        build_toolkit_config()

    errors = exc_info.value.details["errors"]
    assert len(errors) == 4
    assert any(e.startswith("endpoint:") for e in errors)
    assert any(e.startswith("timeout:") for e in errors)
    assert any(e.startswith("sessionPersistence:") for e in errors)
    assert any(e.startswith("batchSize:") for e in errors)


def test_non_numeric_value_is_a_config_error(monkeypatch):
    monkeypatch.setenv("LINEAR_API_KEY", "k")
    monkeypatch.setenv("RETRY_ATTEMPTS", "lots")

    with pytest.raises(ConfigError, match="RETRY_ATTEMPTS"):
        build_toolkit_config()


def test_env_values_are_coerced(monkeypatch):
    monkeypatch.setenv("LINEAR_API_KEY", "k")
    monkeypatch.setenv("CACHE_ENABLED", "false")
    monkeypatch.setenv("RETRY_DELAY", "0.5")
    monkeypatch.setenv("SESSION_PERSISTENCE", "DISK")
    monkeypatch.setenv("SESSION_DIR", "/tmp/linear-sessions")

    config = build_toolkit_config()

    assert config.cache.enabled is False
    assert config.executor.retry_delay == 0.5
    assert config.session.persistence_type == "disk"
    assert config.session.persistence_dir == Path("/tmp/linear-sessions")


def test_overrides_win_over_environment(monkeypatch):
    monkeypatch.setenv("LINEAR_API_KEY", "from-env")

    config = build_toolkit_config({"LINEAR_API_KEY": "from-override", "BATCH_SIZE": 5})

    assert config.executor.api_key == "from-override"
    assert config.batch_size == 5


def test_test_config_wins_over_environment(monkeypatch):
    monkeypatch.setenv("LINEAR_API_KEY", "from-env")
    set_config_for_testing({"LINEAR_API_KEY": "from-test"})

    assert get_config("LINEAR_API_KEY") == "from-test"


def test_yaml_file_is_lowest_priority(tmp_path, monkeypatch):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("LINEAR_API_KEY: from-yaml\ncache:\n  ttl: 42\n", encoding="utf-8")

    load_configuration(config_file=config_file)

    assert get_config("LINEAR_API_KEY") == "from-yaml"
    assert get_config("cache.ttl") == 42
    monkeypatch.setenv("LINEAR_API_KEY", "from-env")
    assert get_config("LINEAR_API_KEY") == "from-env"


def test_dotenv_does_not_override_environment(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("LINEAR_API_KEY=from-dotenv\nBATCH_SIZE=7\n", encoding="utf-8")
    monkeypatch.setenv("LINEAR_API_KEY", "from-env")
    # Register BATCH_SIZE with monkeypatch so the dotenv value is cleaned up
    monkeypatch.setenv("BATCH_SIZE", "")
    monkeypatch.delenv("BATCH_SIZE")

    load_configuration(env_file=env_file)

    assert get_config("LINEAR_API_KEY") == "from-env"
    assert get_config("BATCH_SIZE") == 7


def test_load_configuration_runs_once(tmp_path, mocker):
    spy = mocker.spy(settings.yaml, "safe_load")
    config_file = tmp_path / "config.yaml"
    config_file.write_text("a: 1\n", encoding="utf-8")

    load_configuration(config_file=config_file)
    load_configuration(config_file=config_file)

    assert spy.call_count == 1
