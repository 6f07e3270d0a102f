"""Test helpers for the audit settlement engine.

Document factories return plain dicts (what a store holds) or domain
objects, with overridable fields, so tests only spell out what they
assert on.

Usage:
    from tests.helpers import NOW, auditor_doc, project_doc
"""

from tests.helpers.factories import (
    NOW,
    audit_doc,
    audit_request,
    auditor_doc,
    contribution_doc,
    criteria,
    escrow_doc,
    operator_doc,
    project_doc,
    submission,
)
from tests.helpers.metrics import metric_value

__all__ = [
    "NOW",
    "audit_doc",
    "audit_request",
    "auditor_doc",
    "contribution_doc",
    "criteria",
    "escrow_doc",
    "metric_value",
    "operator_doc",
    "project_doc",
    "submission",
]
