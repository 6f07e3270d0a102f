"""HTTP payment transfer adapter.

Implements PaymentTransferProtocol against a payment provider's REST
API. Each transfer carries an idempotency key derived from the
contribution and milestone it settles, so a replayed request for the
same escrow entry cannot move money twice on the provider side.

Constraints:
- At-most-once from the engine's perspective: no automatic retries
- Any non-2xx response or transport error raises PaymentTransferError
"""

from __future__ import annotations

from typing import Any, Mapping

import httpx
from structlog import get_logger

from audit_settlement.domain.errors import PaymentTransferError

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


def idempotency_key(metadata: Mapping[str, Any]) -> str | None:
    """Key for an escrow release, or None when the metadata cannot identify one."""
    contribution_id = metadata.get("contribution_id")
    milestone_id = metadata.get("milestone_id")
    if not contribution_id or not milestone_id:
        return None
    return f"escrow-release-{contribution_id}-{milestone_id}"


class HttpPaymentTransferAdapter:
    """Payment transfers over HTTP (httpx)."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            base_url: Provider API root, e.g. ``https://payments.example``.
            api_key: Bearer token for the provider.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def create_transfer(
        self,
        amount: int,
        currency: str,
        destination: str,
        metadata: Mapping[str, Any],
    ) -> str:
        """Create a transfer and return the provider's reference.

        Raises:
            PaymentTransferError: The provider refused the transfer or
                could not be reached.
        """
        headers = {"Authorization": f"Bearer {self._api_key}"}
        key = idempotency_key(metadata)
        if key:
            headers["Idempotency-Key"] = key
        payload = {
            "amount": amount,
            "currency": currency,
            "destination": destination,
            "metadata": {k: str(v) for k, v in metadata.items()},
        }

        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            try:
                response = await client.post(
                    f"{self._base_url}/v1/transfers", json=payload, headers=headers
                )
            except httpx.HTTPError as e:
                logger.error(
                    "payment_transfer_error",
                    destination=destination,
                    amount=amount,
                    error=str(e),
                )
                raise PaymentTransferError(amount, destination, str(e)) from e

        if response.status_code >= 300:
            logger.error(
                "payment_transfer_rejected",
                destination=destination,
                amount=amount,
                status_code=response.status_code,
            )
            raise PaymentTransferError(
                amount, destination, f"provider returned HTTP {response.status_code}"
            )

        try:
            transfer_id = response.json()["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise PaymentTransferError(
                amount, destination, "provider response carried no transfer id"
            ) from e

        logger.info("payment_transfer_created", transfer_id=transfer_id, amount=amount)
        return str(transfer_id)
