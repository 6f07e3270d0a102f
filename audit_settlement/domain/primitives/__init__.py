"""Primitives shared by the domain models and services."""

from audit_settlement.domain.primitives.ids import new_id
from audit_settlement.domain.primitives.partial_update import (
    UNSET,
    PartialUpdate,
    to_document_value,
)
from audit_settlement.domain.primitives.rounding import round_half_up, to_decimal
from audit_settlement.domain.primitives.timestamps import (
    ONE_DAY,
    coerce_datetime,
    ensure_utc,
    require_datetime,
    whole_days_between,
)

__all__ = [
    "ONE_DAY",
    "coerce_datetime",
    "ensure_utc",
    "require_datetime",
    "whole_days_between",
    "PartialUpdate",
    "UNSET",
    "round_half_up",
    "to_decimal",
    "to_document_value",
    "new_id",
]
