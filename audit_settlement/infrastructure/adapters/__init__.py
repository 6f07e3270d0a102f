"""Production adapters for the application ports."""

from audit_settlement.infrastructure.adapters.http_payment_transfer import (
    HttpPaymentTransferAdapter,
    idempotency_key,
)
from audit_settlement.infrastructure.adapters.webhook_notification_sender import (
    WebhookNotificationSender,
)

__all__ = [
    "HttpPaymentTransferAdapter",
    "WebhookNotificationSender",
    "idempotency_key",
]
