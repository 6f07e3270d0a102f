"""Notification sender port.

Developer Golden Rules:
1. Fire-and-forget - a failed notification never blocks the owning workflow
2. Rendering and channel selection belong to the implementation
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Mapping, Protocol


class NotificationSenderProtocol(Protocol):
    """Protocol for outbound notifications."""

    @abstractmethod
    async def send(self, recipient: str, template_kind: str, data: Mapping[str, Any]) -> None:
        """Send one notification.

        Args:
            recipient: Recipient id (auditor, creator, operator, contributor).
            template_kind: Template to render, e.g. ``audit_assignment``.
            data: Template data.

        Raises:
            NotificationDeliveryError: If delivery failed.
        """
        ...
