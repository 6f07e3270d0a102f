"""Webhook notification sender.

Implements NotificationSenderProtocol by posting each notification as a
signed JSON payload to a rendering service, which owns templates and
delivery channels.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Mapping

import httpx
from structlog import get_logger

from audit_settlement.domain.errors import NotificationDeliveryError

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Audit-Engine-Signature"


class WebhookNotificationSender:
    """Posts notifications to a webhook (httpx)."""

    def __init__(
        self,
        webhook_url: str,
        secret: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._secret = secret
        self._timeout = timeout
        self._transport = transport

    async def send(self, recipient: str, template_kind: str, data: Mapping[str, Any]) -> None:
        """Deliver one notification.

        Raises:
            NotificationDeliveryError: Non-2xx response or transport error.
        """
        body = json.dumps(
            {"recipient": recipient, "template": template_kind, "data": dict(data)},
            default=str,
        )
        headers = {"Content-Type": "application/json"}
        if self._secret:
            signature = hmac.new(self._secret.encode(), body.encode(), hashlib.sha256).hexdigest()
            headers[SIGNATURE_HEADER] = f"sha256={signature}"

        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            try:
                response = await client.post(self._webhook_url, content=body, headers=headers)
            except httpx.HTTPError as e:
                raise NotificationDeliveryError(recipient, template_kind, str(e)) from e

        if response.status_code >= 300:
            raise NotificationDeliveryError(
                recipient, template_kind, f"webhook returned HTTP {response.status_code}"
            )
        logger.debug("notification_delivered", recipient=recipient, template_kind=template_kind)
