"""Errors raised while loading sync engine settings from the environment."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A sync setting is present but unusable, e.g. a non-numeric interval."""


class MissingConfigurationError(ConfigurationError):
    """A required setting such as ``SYNC_REMOTE_BASE_URL`` is unset or blank."""
