"""Application ports - Abstract interfaces for infrastructure adapters.

Available ports:
- DocumentStoreProtocol: get/set/update, query, increment, transaction
- PaymentTransferProtocol: fund transfers for escrow release
- NotificationSenderProtocol: fire-and-forget notifications
"""

from audit_settlement.application.ports.document_store import (
    DocumentStoreProtocol,
    DocumentTransactionProtocol,
    FieldFilter,
    FilterOp,
    OrderBy,
)
from audit_settlement.application.ports.notification import NotificationSenderProtocol
from audit_settlement.application.ports.payment_transfer import PaymentTransferProtocol

__all__: list[str] = [
    "DocumentStoreProtocol",
    "DocumentTransactionProtocol",
    "FieldFilter",
    "FilterOp",
    "NotificationSenderProtocol",
    "OrderBy",
    "PaymentTransferProtocol",
]
