"""Synchronization defaults for the reconciler and connectivity tracking."""

from __future__ import annotations

from dataclasses import dataclass

from .env import float_env_var, int_env_var
from .errors import ConfigurationError

DEFAULT_DEBOUNCE_SECONDS = 1.0
DEFAULT_POLL_INTERVAL_SECONDS = 30.0
DEFAULT_STALL_THRESHOLD = 5
DEFAULT_PEEK_BATCH_SIZE = 100


@dataclass(frozen=True, slots=True)
class SyncConfig:
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    stall_threshold: int = DEFAULT_STALL_THRESHOLD
    peek_batch_size: int = DEFAULT_PEEK_BATCH_SIZE


def get_sync_config() -> SyncConfig:
    config = SyncConfig(
        debounce_seconds=float_env_var("SYNC_DEBOUNCE_SECONDS", DEFAULT_DEBOUNCE_SECONDS),
        poll_interval_seconds=float_env_var(
            "SYNC_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS
        ),
        stall_threshold=int_env_var("SYNC_STALL_THRESHOLD", DEFAULT_STALL_THRESHOLD),
        peek_batch_size=int_env_var("SYNC_PEEK_BATCH_SIZE", DEFAULT_PEEK_BATCH_SIZE),
    )
    if config.poll_interval_seconds <= 0:
        raise ConfigurationError("SYNC_POLL_INTERVAL_SECONDS must be positive")
    if config.stall_threshold < 1:
        raise ConfigurationError("SYNC_STALL_THRESHOLD must be at least 1")
    if config.peek_batch_size < 1:
        raise ConfigurationError("SYNC_PEEK_BATCH_SIZE must be at least 1")
    return config
