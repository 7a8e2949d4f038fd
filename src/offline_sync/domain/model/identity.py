"""
Entity identity:
locally minted temporary ids versus server-assigned persistent ids.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from uuid import uuid4

from .enums import IdKind

_SEPARATOR = ":"


@dataclass(frozen=True, slots=True)
class EntityId:
    """Tagged identifier; the kind is explicit, never inferred from the value."""

    kind: IdKind
    value: str

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("entity id value must not be empty")

    @classmethod
    def mint_temporary(cls) -> EntityId:
        return cls(IdKind.TEMPORARY, uuid4().hex)

    @classmethod
    def persistent(cls, value: str | int) -> EntityId:
        return cls(IdKind.PERSISTENT, str(value))

    @classmethod
    def parse(cls, text: str) -> EntityId:
        """Inverse of ``str(entity_id)``."""
        prefix, separator, value = text.partition(_SEPARATOR)
        if not separator:
            raise ValueError(f"Malformed entity id: {text!r}")
        try:
            kind = IdKind(prefix)
        except ValueError as exc:
            raise ValueError(f"Unknown entity id kind in {text!r}") from exc
        return cls(kind, value)

    @property
    def is_temporary(self) -> bool:
        return self.kind is IdKind.TEMPORARY

    @property
    def is_persistent(self) -> bool:
        return self.kind is IdKind.PERSISTENT

    @property
    def sort_key(self) -> tuple[int, int | float, str]:
        # persistent first; numeric server ids in numeric order
        numeric = int(self.value) if self.value.isdecimal() else math.inf
        return (0 if self.is_persistent else 1, numeric, self.value)

    def __str__(self) -> str:
        return f"{self.kind}{_SEPARATOR}{self.value}"
