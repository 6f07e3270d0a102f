"""Typed partial updates for document aggregates.

A partial update is a frozen dataclass whose fields all default to
``UNSET``. Only the fields a caller sets are written, so two writers
touching different fields of the same document never overwrite each
other's values. Nested document fields are addressed by declaring a
``path`` in the field metadata.

Usage:
    @dataclass(frozen=True)
    class AuditorStatsPatch(PartialUpdate):
        last_assignment_at: Any = field(
            default=UNSET, metadata={"path": "stats.last_assignment_at"}
        )

    fields = AuditorStatsPatch(last_assignment_at=now).to_fields()
    # {"stats.last_assignment_at": now}
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any


class _Unset:
    """Sentinel type for "field not touched"."""

    _instance: "_Unset | None" = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def to_document_value(value: Any) -> Any:
    """Convert a model value into its stored document form.

    Enums are stored by value, tuples as lists, nested models through
    their ``to_dict`` method. Datetimes are stored as-is.
    """
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [to_document_value(item) for item in value]
    if isinstance(value, dict):
        return {key: to_document_value(item) for key, item in value.items()}
    return value


@dataclasses.dataclass(frozen=True)
class PartialUpdate:
    """Base class for typed partial-update structs."""

    def to_fields(self) -> dict[str, Any]:
        """Return only the touched fields, keyed by document path."""
        fields: dict[str, Any] = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is UNSET:
                continue
            fields[f.metadata.get("path", f.name)] = to_document_value(value)
        return fields

    def is_empty(self) -> bool:
        return not self.to_fields()
