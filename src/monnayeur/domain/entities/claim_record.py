"""
ClaimRecord entity - one wallet's claim and its mint lifecycle.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from monnayeur.domain.value_objects.transaction_ref import (
    RealTx,
    TransactionRef,
)
from monnayeur.domain.value_objects.wallet_address import WalletAddress


class ClaimStatus(str, Enum):
    """Claim processing states."""

    UNCLAIMED = "unclaimed"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    TIMEOUT = "timeout"

    @property
    def is_retryable(self) -> bool:
        """Terminal failures that the retry operation may reset."""
        return self in (ClaimStatus.FAILED, ClaimStatus.TIMEOUT)


@dataclass
class ClaimRecord:
    """
    ClaimRecord entity, the permanent audit trail of a wallet's claim.

    Business rules:
    - One record per canonical (lowercase) address
    - Status transitions: UNCLAIMED → PENDING → CONFIRMED/FAILED/TIMEOUT
    - FAILED/TIMEOUT → PENDING only through explicit retry
    - CONFIRMED always carries a transaction reference
    - Referrer is written at most once
    - Records are never deleted
    """

    address: WalletAddress
    status: ClaimStatus = field(default=ClaimStatus.UNCLAIMED)
    transaction_ref: Optional[TransactionRef] = field(default=None)
    mint_amount: Decimal = field(default=Decimal("0"))
    submitted_at: Optional[datetime] = field(default=None)
    confirmed_at: Optional[datetime] = field(default=None)
    referrer_address: Optional[WalletAddress] = field(default=None)
    referrer_code: Optional[str] = field(default=None)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: Optional[datetime] = field(default=None)

    def __post_init__(self):
        """Validate record consistency."""
        if self.mint_amount < 0:
            raise ValueError("Mint amount cannot be negative")

        if self.status == ClaimStatus.CONFIRMED and self.transaction_ref is None:
            raise ValueError("Confirmed claim requires a transaction reference")

    @property
    def tx_hash(self) -> Optional[str]:
        """Hash of the real transaction, if any."""
        if isinstance(self.transaction_ref, RealTx):
            return self.transaction_ref.tx_hash
        return None

    @property
    def has_real_transaction(self) -> bool:
        return isinstance(self.transaction_ref, RealTx)

    def is_pending_older_than(self, cutoff: datetime) -> bool:
        """Check if pending submission started before cutoff."""
        return (
            self.status == ClaimStatus.PENDING
            and self.submitted_at is not None
            and self.submitted_at < cutoff
        )

    def to_dict(self, explorer_base: Optional[str] = None) -> dict:
        """Convert entity to dictionary representation."""
        explorer_url = None
        if explorer_base and self.transaction_ref is not None:
            explorer_url = self.transaction_ref.explorer_url(explorer_base)

        return {
            "address": str(self.address),
            "status": self.status.value,
            "transaction_id": (
                self.transaction_ref.to_storage() if self.transaction_ref else None
            ),
            "explorer_url": explorer_url,
            "mint_amount": str(self.mint_amount),
            "submitted_at": (
                self.submitted_at.isoformat() if self.submitted_at else None
            ),
            "confirmed_at": (
                self.confirmed_at.isoformat() if self.confirmed_at else None
            ),
            "referrer_address": (
                str(self.referrer_address) if self.referrer_address else None
            ),
            "referrer_code": self.referrer_code,
            "created_at": self.created_at.isoformat(),
        }
