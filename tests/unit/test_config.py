"""Unit tests for QuotesConfig."""

import pytest
from pydantic import ValidationError

from idempotent_quotes.config import QuotesConfig


def test_defaults():
    config = QuotesConfig()

    assert config.max_key_length == 100
    assert config.store_timeout_seconds == 5.0
    assert config.retry_after_seconds == 5
    assert config.storage_adapter == "memory"
    assert config.api_tokens == ["dev-token"]
    assert config.log_level == "INFO"
    assert config.json_logs is True


def test_config_is_frozen():
    config = QuotesConfig()

    with pytest.raises(ValidationError):
        config.max_key_length = 10


@pytest.mark.parametrize("value", [0, 256, -1])
def test_rejects_bad_max_key_length(value):
    with pytest.raises(ValidationError, match="max_key_length"):
        QuotesConfig(max_key_length=value)


@pytest.mark.parametrize("value", [0, -1.0, 60.5])
def test_rejects_bad_store_timeout(value):
    with pytest.raises(ValidationError, match="store_timeout_seconds"):
        QuotesConfig(store_timeout_seconds=value)


def test_rejects_bad_retry_after():
    with pytest.raises(ValidationError, match="retry_after_seconds"):
        QuotesConfig(retry_after_seconds=0)


def test_rejects_unknown_storage_adapter():
    with pytest.raises(ValidationError):
        QuotesConfig(storage_adapter="redis")


def test_api_tokens_from_comma_separated_string():
    config = QuotesConfig(api_tokens=" a, b ,,c ")

    assert config.api_tokens == ["a", "b", "c"]


def test_log_level_is_normalized():
    assert QuotesConfig(log_level="debug").log_level == "DEBUG"


def test_rejects_unknown_log_level():
    with pytest.raises(ValidationError, match="Invalid log level"):
        QuotesConfig(log_level="verbose")


def test_from_env(monkeypatch):
    monkeypatch.setenv("QUOTES_MAX_KEY_LENGTH", "64")
    monkeypatch.setenv("QUOTES_STORE_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("QUOTES_STORAGE_ADAPTER", "sql")
    monkeypatch.setenv("QUOTES_DATABASE_URL", "sqlite:///./test.db")
    monkeypatch.setenv("QUOTES_API_TOKENS", "token-a,token-b")
    monkeypatch.setenv("QUOTES_JSON_LOGS", "false")

    config = QuotesConfig.from_env()

    assert config.max_key_length == 64
    assert config.store_timeout_seconds == 2.5
    assert config.storage_adapter == "sql"
    assert config.database_url == "sqlite:///./test.db"
    assert config.api_tokens == ["token-a", "token-b"]
    assert config.json_logs is False


def test_from_env_custom_prefix(monkeypatch):
    monkeypatch.setenv("APP_RETRY_AFTER_SECONDS", "9")

    assert QuotesConfig.from_env(prefix="APP_").retry_after_seconds == 9


def test_from_env_missing_values_keep_defaults(monkeypatch):
    for name in ("MAX_KEY_LENGTH", "STORAGE_ADAPTER", "API_TOKENS"):
        monkeypatch.delenv(f"QUOTES_{name}", raising=False)

    config = QuotesConfig.from_env()

    assert config.max_key_length == 100
    assert config.storage_adapter == "memory"


def test_from_dict():
    config = QuotesConfig.from_dict({"max_key_length": 50, "log_level": "warning"})

    assert config.max_key_length == 50
    assert config.log_level == "WARNING"
