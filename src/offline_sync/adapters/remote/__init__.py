"""Public interface for the remote entity adapter."""

from __future__ import annotations

from .client import HttpEntityRemote, classify_response
from .schema import EntityPayload, ErrorPayload

__all__ = [
    "EntityPayload",
    "ErrorPayload",
    "HttpEntityRemote",
    "classify_response",
]
