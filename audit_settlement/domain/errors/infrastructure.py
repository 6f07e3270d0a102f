"""Infrastructure errors raised by external collaborators.

Infrastructure errors are logged, counted and isolated to the failing
item. The owning workflow completes with a reduced result; these errors
never revert an already-committed audit decision.
"""

from __future__ import annotations

from audit_settlement.domain.exceptions import AuditEngineError


class PaymentTransferError(AuditEngineError):
    """Raised when the payment service rejects or fails a transfer.

    Attributes:
        amount: Amount requested, in minor units.
        destination: Payout destination requested.
        reason: Provider or transport reason.
    """

    def __init__(self, amount: int, destination: str, reason: str) -> None:
        self.amount = amount
        self.destination = destination
        self.reason = reason
        super().__init__(
            f"Transfer of {amount} to {destination} failed: {reason}"
        )


class NotificationDeliveryError(AuditEngineError):
    """Raised by a notification sender that could not deliver."""

    def __init__(self, recipient: str, template_kind: str, reason: str) -> None:
        self.recipient = recipient
        self.template_kind = template_kind
        self.reason = reason
        super().__init__(
            f"Notification {template_kind} to {recipient} failed: {reason}"
        )
