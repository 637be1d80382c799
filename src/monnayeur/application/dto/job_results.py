"""
Result DTOs for the background jobs.
"""

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import List, Tuple

from monnayeur.domain.value_objects.wallet_address import WalletAddress


@dataclass
class SweepResult:
    """Per-record outcome counts of one reconciliation sweep."""

    confirmed: int = 0
    failed: int = 0
    timeout: int = 0
    still_pending: int = 0
    skipped: int = 0
    late_confirmed: int = 0
    errors: int = 0

    @property
    def total(self) -> int:
        return sum(asdict(self).values())

    def to_dict(self) -> dict:
        return {**asdict(self), "total": self.total}


@dataclass(frozen=True)
class BatchJob:
    """Deduplicated recipients sharing one mint amount. Never persisted."""

    addresses: Tuple[WalletAddress, ...]
    amount: Decimal

    @property
    def amounts(self) -> List[Decimal]:
        return [self.amount] * len(self.addresses)

    def __len__(self) -> int:
        return len(self.addresses)


@dataclass
class BatchRunResult:
    """Counts for one batch scheduler run."""

    candidates: int = 0
    duplicates_dropped: int = 0
    batches: int = 0
    acquired: int = 0
    skipped: int = 0
    minted: int = 0
    already_funded: int = 0
    fallback_minted: int = 0
    fallback_failed: int = 0
    awaiting_confirmation: int = 0
    transaction_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RetryReport:
    """Summary of a bulk retry of failed and timed-out claims."""

    attempted: int = 0
    confirmed: int = 0
    pending: int = 0
    rejected: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return asdict(self)
