"""Fire-and-forget notification helpers.

Notification failures are logged and counted by the caller but never
propagate: a missed e-mail must not undo an assignment, a settlement or
an interest run.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from audit_settlement.application import collections
from audit_settlement.application.ports.document_store import (
    DocumentStoreProtocol,
    FieldFilter,
    FilterOp,
)
from audit_settlement.application.ports.notification import NotificationSenderProtocol

logger = get_logger(__name__)


async def send_notification(
    sender: NotificationSenderProtocol,
    recipient: str,
    template_kind: str,
    data: Mapping[str, Any],
    log: FilteringBoundLogger | None = None,
) -> bool:
    """Send one notification, swallowing delivery failures.

    Returns:
        True if the sender accepted the notification.
    """
    log = log or logger
    try:
        await sender.send(recipient, template_kind, dict(data))
    except Exception as e:
        log.warning(
            "notification_failed",
            recipient=recipient,
            template_kind=template_kind,
            error=str(e),
        )
        return False
    return True


async def notify_operators(
    store: DocumentStoreProtocol,
    sender: NotificationSenderProtocol,
    template_kind: str,
    data: Mapping[str, Any],
    log: FilteringBoundLogger | None = None,
) -> int:
    """Notify every operator with audit alerts enabled.

    Returns:
        Number of operators the notification was delivered to.
    """
    log = log or logger
    try:
        operators = await store.query(
            collections.OPERATORS,
            filters=[FieldFilter("audit_alerts_enabled", FilterOp.EQ, True)],
        )
    except Exception as e:
        log.warning("operator_lookup_failed", template_kind=template_kind, error=str(e))
        return 0

    delivered = await asyncio.gather(
        *(
            send_notification(sender, operator["id"], template_kind, data, log)
            for operator in operators
        )
    )
    return sum(1 for ok in delivered if ok)
