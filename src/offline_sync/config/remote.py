"""Remote entity service configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import float_env_var, int_env_var, optional_env_var, require_env_vars
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_COLLECTION = "items"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_RATE_LIMIT_SECONDS = 1.0


@dataclass(frozen=True, slots=True)
class RemoteConfig:
    """Where the authoritative entity collection lives and how to reach it."""

    collection: str
    resilience: ResilienceConfig


def _ratelimit_from_env() -> RateLimit | None:
    """Build the request budget from ``SYNC_REMOTE_RATE_LIMIT`` calls per window.

    Unset or zero disables limiting.
    """

    max_calls = int_env_var("SYNC_REMOTE_RATE_LIMIT", 0)
    if max_calls < 0:
        raise ConfigurationError("SYNC_REMOTE_RATE_LIMIT must not be negative")
    if max_calls == 0:
        return None
    per_seconds = float_env_var("SYNC_REMOTE_RATE_LIMIT_SECONDS", DEFAULT_RATE_LIMIT_SECONDS)
    if per_seconds <= 0:
        raise ConfigurationError("SYNC_REMOTE_RATE_LIMIT_SECONDS must be positive")
    return RateLimit(max_calls=max_calls, per_seconds=per_seconds)


def get_remote_config(*, ratelimit: RateLimit | None = None) -> RemoteConfig:
    values = require_env_vars(("SYNC_REMOTE_BASE_URL",))
    collection = optional_env_var("SYNC_REMOTE_COLLECTION") or DEFAULT_COLLECTION
    token = optional_env_var("SYNC_REMOTE_TOKEN")
    timeout = float_env_var("SYNC_REMOTE_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)
    if timeout <= 0:
        raise ConfigurationError("SYNC_REMOTE_TIMEOUT_SECONDS must be positive")

    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if token is not None:
        headers["Authorization"] = f"Bearer {token}"

    resilience = ResilienceConfig(
        name="remote",
        base_url=values["SYNC_REMOTE_BASE_URL"].rstrip("/") + "/",
        timeout_seconds=timeout,
        retry=RetryPolicy(),
        ratelimit=ratelimit or _ratelimit_from_env(),
        default_headers=headers,
    )
    return RemoteConfig(collection=collection.strip("/"), resilience=resilience)
