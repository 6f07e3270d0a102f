"""Notification sender stub that records deliveries in memory."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from audit_settlement.domain.errors import NotificationDeliveryError


@dataclass(frozen=True)
class SentNotification:
    recipient: str
    template_kind: str
    data: dict[str, Any]


@dataclass
class NotificationSenderStub:
    """Stub implementation of NotificationSenderProtocol.

    Attributes:
        sent: Delivered notifications, in call order.
        fail_recipients: Recipients whose deliveries fail.
        fail_all: Fail every delivery.
    """

    sent: list[SentNotification] = field(default_factory=list)
    fail_recipients: set[str] = field(default_factory=set)
    fail_all: bool = False

    async def send(self, recipient: str, template_kind: str, data: Mapping[str, Any]) -> None:
        if self.fail_all or recipient in self.fail_recipients:
            raise NotificationDeliveryError(recipient, template_kind, "Simulated delivery failure")
        self.sent.append(SentNotification(recipient, template_kind, dict(data)))

    def sent_to(self, recipient: str) -> list[SentNotification]:
        return [n for n in self.sent if n.recipient == recipient]

    def of_kind(self, template_kind: str) -> list[SentNotification]:
        return [n for n in self.sent if n.template_kind == template_kind]
