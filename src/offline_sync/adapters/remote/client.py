"""HTTP adapter for the authoritative remote entity collection."""

from __future__ import annotations

import asyncio
import dataclasses
from http import HTTPStatus
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from offline_sync.adapters.http_resilience import ResilientClient, build_limiter
from offline_sync.domain.errors import (
    RemoteNotFoundError,
    RemoteTransientError,
    RemoteValidationError,
    TransientReason,
)

from .schema import EntityPayload, ErrorPayload

if TYPE_CHECKING:
    from collections.abc import Callable

    from offline_sync.config.http_resilience import ResilienceConfig
    from offline_sync.config.remote import RemoteConfig
    from offline_sync.domain.model import Entity, EntityId, Payload

log = getLogger(__name__)

_VALIDATION_STATUSES = frozenset(
    {HTTPStatus.BAD_REQUEST, HTTPStatus.CONFLICT, HTTPStatus.UNPROCESSABLE_ENTITY}
)
_NOT_FOUND_STATUSES = frozenset({HTTPStatus.NOT_FOUND, HTTPStatus.GONE})
_AUTH_STATUSES = frozenset({HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN})
_MAX_ERROR_TEXT = 200


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        try:
            summary = ErrorPayload.model_validate(payload).summary()
        except ValidationError:
            summary = None
        if summary:
            return f"HTTP {response.status_code}: {summary}"
    text = response.text.strip()[:_MAX_ERROR_TEXT]
    return f"HTTP {response.status_code}: {text}" if text else f"HTTP {response.status_code}"


def classify_response(response: httpx.Response) -> None:
    """Raise the remote error matching a non-successful response."""

    status = response.status_code
    if response.is_success:
        return
    message = _error_message(response)
    if status in _NOT_FOUND_STATUSES:
        raise RemoteNotFoundError(message, status_code=status)
    if status in _VALIDATION_STATUSES:
        raise RemoteValidationError(message, status_code=status)
    if status in _AUTH_STATUSES:
        raise RemoteTransientError(message, reason=TransientReason.AUTH, status_code=status)
    if status == HTTPStatus.REQUEST_TIMEOUT:
        raise RemoteTransientError(message, reason=TransientReason.TIMEOUT, status_code=status)
    if status == HTTPStatus.TOO_MANY_REQUESTS or status >= HTTPStatus.INTERNAL_SERVER_ERROR:
        raise RemoteTransientError(message, reason=TransientReason.SERVER, status_code=status)
    if HTTPStatus.BAD_REQUEST <= status < HTTPStatus.INTERNAL_SERVER_ERROR:
        raise RemoteValidationError(message, status_code=status)
    raise RemoteTransientError(
        f"Unexpected response: {message}", reason=TransientReason.SERVER, status_code=status
    )


class HttpEntityRemote:
    """Blocking facade over the async client.

    Each call opens a short-lived client on its own event loop. The rate limiter
    outlives those clients so the configured budget holds across calls.
    """

    def __init__(
        self,
        *,
        config: RemoteConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._ping_resilience = dataclasses.replace(config.resilience, ratelimit=None)
        self._limiter = build_limiter(config.resilience)
        self._client_factory = client_factory or self.build_client

    def build_client(self, resilience: ResilienceConfig) -> ResilientClient:
        limiter = self._limiter if resilience.ratelimit is not None else None
        return ResilientClient(resilience, limiter=limiter)

    @property
    def collection_path(self) -> str:
        return self._config.collection

    def item_path(self, entity_id: EntityId) -> str:
        if entity_id.is_temporary:
            raise ValueError(f"Temporary id {entity_id} cannot address a remote record")
        return f"{self._config.collection}/{entity_id.value}"

    def create(self, payload: Payload) -> Entity:
        response = asyncio.run(self._request("POST", self.collection_path, json=payload))
        return self._parse_entity(response)

    def update(self, entity_id: EntityId, payload: Payload) -> Entity:
        response = asyncio.run(self._request("PATCH", self.item_path(entity_id), json=payload))
        return self._parse_entity(response)

    def delete(self, entity_id: EntityId) -> None:
        asyncio.run(self._request("DELETE", self.item_path(entity_id)))

    def list_all(self) -> list[Entity]:
        response = asyncio.run(self._request("GET", self.collection_path))
        payload = self._json(response)
        if not isinstance(payload, list):
            raise RemoteTransientError(
                "Expected a JSON array from the collection endpoint",
                reason=TransientReason.SERVER,
                status_code=response.status_code,
            )
        try:
            return [EntityPayload.model_validate(item).to_entity() for item in payload]
        except ValidationError as exc:
            raise RemoteTransientError(
                f"Malformed record in collection: {exc}",
                reason=TransientReason.SERVER,
                status_code=response.status_code,
            ) from exc

    def ping(self) -> bool:
        """Return whether the remote answers at all; used as the connectivity probe."""

        try:
            response = asyncio.run(
                self._raw_request("GET", self.collection_path, resilience=self._ping_resilience)
            )
        except httpx.HTTPError as exc:
            log.debug("Remote probe failed: %s", exc)
            return False
        return response.status_code < HTTPStatus.INTERNAL_SERVER_ERROR

    async def _raw_request(
        self,
        method: str,
        path: str,
        *,
        json: Payload | None = None,
        resilience: ResilienceConfig | None = None,
    ) -> httpx.Response:
        async with self._client_factory(resilience or self._resilience) as client:
            if json is None:
                return await client.request(method, path)
            return await client.request(method, path, json=json)

    async def _request(
        self, method: str, path: str, *, json: Payload | None = None
    ) -> httpx.Response:
        try:
            response = await self._raw_request(method, path, json=json)
        except httpx.TimeoutException as exc:
            raise RemoteTransientError(
                f"{method} {path} timed out", reason=TransientReason.TIMEOUT
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteTransientError(
                f"{method} {path} failed: {exc}", reason=TransientReason.NETWORK
            ) from exc
        classify_response(response)
        log.debug("%s %s -> %s", method, path, response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> object:
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteTransientError(
                "Response body is not JSON",
                reason=TransientReason.SERVER,
                status_code=response.status_code,
            ) from exc

    def _parse_entity(self, response: httpx.Response) -> Entity:
        payload = self._json(response)
        try:
            return EntityPayload.model_validate(payload).to_entity()
        except ValidationError as exc:
            raise RemoteTransientError(
                f"Malformed entity in response: {exc}",
                reason=TransientReason.SERVER,
                status_code=response.status_code,
            ) from exc


if TYPE_CHECKING:
    from typing import cast

    from offline_sync.domain.ports.remote import EntityRemote

    _remote_check: EntityRemote = HttpEntityRemote(config=cast("RemoteConfig", object()))
