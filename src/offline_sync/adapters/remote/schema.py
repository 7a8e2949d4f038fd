"""Pydantic models describing the remote entity API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

from offline_sync.domain.model import Entity, EntityId, Payload, clean_record


class RemoteBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class EntityPayload(RemoteBaseModel):
    """A stored record as returned by the remote; every non-id field is kept."""

    model_config = ConfigDict(extra="allow")

    id: str

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        if isinstance(value, bool):
            raise ValueError("id must be a string or integer")
        if isinstance(value, int):
            return str(value)
        if isinstance(value, str) and not value.strip():
            raise ValueError("id must not be blank")
        return value

    def record(self) -> Payload:
        extra = self.model_extra or {}
        return clean_record(extra)

    def to_entity(self) -> Entity:
        return Entity(id=EntityId.persistent(self.id), data=self.record())


class ErrorPayload(RemoteBaseModel):
    message: str | None = None
    detail: str | None = None
    error: str | None = None

    def summary(self) -> str | None:
        return self.message or self.detail or self.error
