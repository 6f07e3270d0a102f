"""Application layer: ports and services of the audit settlement engine."""
