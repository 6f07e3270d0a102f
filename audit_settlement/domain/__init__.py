"""Domain layer for the audit settlement engine.

Pure models, errors and numeric primitives. Nothing in this package
performs I/O.
"""
