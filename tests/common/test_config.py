from __future__ import annotations

from pathlib import Path

import pytest

from offline_sync.config import (
    ConfigurationError,
    MissingConfigurationError,
    RateLimit,
    RetryPolicy,
    SyncConfig,
    get_database_config,
    get_remote_config,
    get_storage_config,
    get_sync_config,
    require_env_vars,
)

_SYNC_VARS = (
    "SYNC_DEBOUNCE_SECONDS",
    "SYNC_POLL_INTERVAL_SECONDS",
    "SYNC_STALL_THRESHOLD",
    "SYNC_PEEK_BATCH_SIZE",
)


@pytest.fixture
def clean_sync_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _SYNC_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_reports_missing_and_blank(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_VAR", raising=False)
    monkeypatch.setenv("BLANK_VAR", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_VAR", "BLANK_VAR"])

    assert "BLANK_VAR, MISSING_VAR" in str(exc.value)


def test_remote_config_requires_base_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SYNC_REMOTE_BASE_URL", raising=False)

    with pytest.raises(MissingConfigurationError):
        get_remote_config()


def test_remote_config_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SYNC_REMOTE_BASE_URL", "https://sync.test/api/")
    monkeypatch.setenv("SYNC_REMOTE_COLLECTION", "/todos/")
    monkeypatch.setenv("SYNC_REMOTE_TIMEOUT_SECONDS", "2.5")
    monkeypatch.delenv("SYNC_REMOTE_TOKEN", raising=False)

    config = get_remote_config(ratelimit=RateLimit(max_calls=5, per_seconds=1))

    assert config.resilience.base_url == "https://sync.test/api/"
    assert config.collection == "todos"
    assert config.resilience.timeout_seconds == 2.5
    assert config.resilience.ratelimit == RateLimit(max_calls=5, per_seconds=1)
    assert config.resilience.default_headers is not None
    assert "Authorization" not in config.resilience.default_headers


def test_remote_config_reads_rate_limit(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SYNC_REMOTE_BASE_URL", "https://sync.test")
    monkeypatch.setenv("SYNC_REMOTE_RATE_LIMIT", "3")
    monkeypatch.setenv("SYNC_REMOTE_RATE_LIMIT_SECONDS", "2")

    config = get_remote_config()

    assert config.resilience.ratelimit == RateLimit(max_calls=3, per_seconds=2.0)


def test_remote_config_without_rate_limit(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SYNC_REMOTE_BASE_URL", "https://sync.test")
    monkeypatch.delenv("SYNC_REMOTE_RATE_LIMIT", raising=False)

    assert get_remote_config().resilience.ratelimit is None


@pytest.mark.parametrize(
    ("calls", "seconds"),
    [("-1", "1"), ("two", "1"), ("2", "0")],
)
def test_remote_config_rejects_bad_rate_limit(
    monkeypatch: pytest.MonkeyPatch, calls: str, seconds: str
) -> None:
    monkeypatch.setenv("SYNC_REMOTE_BASE_URL", "https://sync.test")
    monkeypatch.setenv("SYNC_REMOTE_RATE_LIMIT", calls)
    monkeypatch.setenv("SYNC_REMOTE_RATE_LIMIT_SECONDS", seconds)

    with pytest.raises(ConfigurationError):
        get_remote_config()


def test_remote_config_rejects_bad_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SYNC_REMOTE_BASE_URL", "https://sync.test")
    monkeypatch.setenv("SYNC_REMOTE_TIMEOUT_SECONDS", "soon")

    with pytest.raises(ConfigurationError):
        get_remote_config()


def test_retry_policy_never_retries_creates() -> None:
    policy = RetryPolicy()

    assert "POST" not in policy.allowed_methods
    assert "PATCH" in policy.allowed_methods
    assert policy.build() is not None


def test_sync_config_defaults(clean_sync_env: pytest.MonkeyPatch) -> None:
    _ = clean_sync_env

    assert get_sync_config() == SyncConfig()


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("SYNC_POLL_INTERVAL_SECONDS", "0"),
        ("SYNC_STALL_THRESHOLD", "0"),
        ("SYNC_PEEK_BATCH_SIZE", "many"),
    ],
)
def test_sync_config_validation(
    clean_sync_env: pytest.MonkeyPatch, name: str, value: str
) -> None:
    clean_sync_env.setenv(name, value)

    with pytest.raises(ConfigurationError):
        get_sync_config()


def test_storage_paths_follow_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("OFFLINE_SYNC_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("DATABASE_URI", raising=False)

    storage = get_storage_config()
    database = get_database_config(storage=storage)

    assert storage.resolve_data_dir() == (tmp_path / "data").resolve()
    assert database.uri.endswith("offline_sync.db")
    assert (tmp_path / "data").is_dir()


def test_database_uri_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite+pysqlite:///:memory:")

    assert get_database_config().uri == "sqlite+pysqlite:///:memory:"
