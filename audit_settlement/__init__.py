"""
Audit Settlement - Audit Lifecycle & Settlement Engine

Matches milestone audit work to qualified auditors, drives the
assignment/acceptance lifecycle with timeouts and escalation, gates
submitted audit reports, transitions milestone state, releases escrowed
contributor funds through a fallible payment service, computes auditor
compensation and accrues interest on held escrow balances.

Operating Principles:
- An accepted audit decision is never reverted by a payment failure
- A release-schedule entry is released at most once
- Partial success is reported, never hidden
- Ledger discrepancies are escalated, never auto-corrected
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
