"""Entities as rendered by the UI: an identity plus an opaque JSON record."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .identity import EntityId

type JSONValue = str | int | float | bool | None | list[JSONValue] | dict[str, JSONValue]
type Payload = dict[str, JSONValue]

ID_FIELD = "id"


def clean_record(data: Mapping[str, JSONValue]) -> Payload:
    """Copy ``data`` without the identity field, which lives on ``Entity.id``."""
    return {key: value for key, value in data.items() if key != ID_FIELD}


@dataclass(frozen=True, slots=True)
class Entity:
    id: EntityId
    data: Payload = field(default_factory=dict)

    def merged(self, changes: Mapping[str, JSONValue]) -> Entity:
        """Return a full record with ``changes`` merged over the current values."""
        return Entity(id=self.id, data={**self.data, **clean_record(changes)})

    def with_id(self, entity_id: EntityId) -> Entity:
        return Entity(id=entity_id, data=dict(self.data))
