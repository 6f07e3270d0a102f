"""Payment transfer stub.

Records every transfer request in memory and returns sequential transfer
references. Failures can be injected for the next N calls or for specific
contributions, to exercise partial settlement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from structlog import get_logger

from audit_settlement.domain.errors import PaymentTransferError

logger = get_logger(__name__)


@dataclass(frozen=True)
class RecordedTransfer:
    """A transfer the stub accepted."""

    transfer_id: str
    amount: int
    currency: str
    destination: str
    metadata: dict[str, str]


@dataclass
class PaymentTransferStub:
    """Stub implementation of PaymentTransferProtocol.

    Attributes:
        transfers: Accepted transfers, in call order.
        attempts: Every call, accepted or not, as (contribution_id, amount).
        failing_contributions: Contribution ids whose transfers always fail.
    """

    transfers: list[RecordedTransfer] = field(default_factory=list)
    attempts: list[tuple[str, int]] = field(default_factory=list)
    failing_contributions: set[str] = field(default_factory=set)
    _fail_count: int = 0

    async def create_transfer(
        self,
        amount: int,
        currency: str,
        destination: str,
        metadata: Mapping[str, str],
    ) -> str:
        contribution_id = metadata.get("contribution_id", "")
        self.attempts.append((contribution_id, amount))

        if self._fail_count > 0:
            self._fail_count -= 1
            raise PaymentTransferError(amount, destination, "Simulated provider failure")
        if contribution_id in self.failing_contributions:
            raise PaymentTransferError(amount, destination, "Simulated declined transfer")

        transfer_id = f"tr_{len(self.transfers) + 1:06d}"
        self.transfers.append(
            RecordedTransfer(
                transfer_id=transfer_id,
                amount=amount,
                currency=currency,
                destination=destination,
                metadata=dict(metadata),
            )
        )
        logger.debug("Stub transfer created", transfer_id=transfer_id, amount=amount)
        return transfer_id

    def fail_next(self, count: int = 1) -> None:
        """Fail the next ``count`` transfers (test helper)."""
        self._fail_count = count

    def fail_for(self, contribution_id: str) -> None:
        """Always fail transfers for one contribution (test helper)."""
        self.failing_contributions.add(contribution_id)

    @property
    def total_transferred(self) -> int:
        return sum(t.amount for t in self.transfers)
