"""Payment transfer port.

Protocol for the external payment service that moves released escrow to
a project's payout destination.

Developer Golden Rules:
1. A transfer is at-most-once from the engine's point of view
2. The engine never re-issues a transfer for an entry already marked released
3. Failures raise PaymentTransferError; callers isolate them per entry
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Mapping, Protocol


class PaymentTransferProtocol(Protocol):
    """Protocol for creating fund transfers."""

    @abstractmethod
    async def create_transfer(
        self,
        amount: int,
        currency: str,
        destination: str,
        metadata: Mapping[str, str],
    ) -> str:
        """Transfer ``amount`` minor units to ``destination``.

        Args:
            amount: Amount in minor units, positive.
            currency: ISO currency code, lower case.
            destination: Payout account reference.
            metadata: Correlation data (contribution, project, milestone, audit).

        Returns:
            The payment service's transfer reference.

        Raises:
            PaymentTransferError: If the transfer was rejected or could not be made.
        """
        ...
