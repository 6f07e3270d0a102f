"""HTTP surface for the audit settlement engine."""
