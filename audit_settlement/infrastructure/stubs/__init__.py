"""In-memory stub implementations of the application ports."""

from audit_settlement.infrastructure.stubs.in_memory_document_store import (
    InMemoryDocumentStore,
    InMemoryTransaction,
)
from audit_settlement.infrastructure.stubs.notification_stub import (
    NotificationSenderStub,
    SentNotification,
)
from audit_settlement.infrastructure.stubs.payment_transfer_stub import (
    PaymentTransferStub,
    RecordedTransfer,
)

__all__ = [
    "InMemoryDocumentStore",
    "InMemoryTransaction",
    "NotificationSenderStub",
    "PaymentTransferStub",
    "RecordedTransfer",
    "SentNotification",
]
