"""Prefixed document identifiers."""

from __future__ import annotations

from uuid import uuid4


def new_id(prefix: str) -> str:
    """Return a unique id such as ``assignment_3f2a...``."""
    return f"{prefix}_{uuid4().hex}"
