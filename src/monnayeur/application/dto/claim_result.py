"""
Claim result DTO returned to claim callers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from monnayeur.domain.value_objects.transaction_ref import TransactionRef


class ClaimOutcome(str, Enum):
    """User-visible claim status."""

    CONFIRMED = "confirmed"
    PENDING = "pending"
    REJECTED = "rejected"


class ClaimReason(str, Enum):
    """Why a claim is pending or rejected."""

    INVALID_ADDRESS = "invalid_address"
    IN_FLIGHT = "in_flight"
    REQUIRES_RETRY = "requires_retry"
    SUBMISSION_REJECTED = "submission_rejected"
    PROCESSING = "processing"
    CHAIN_UNAVAILABLE = "chain_unavailable"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


_MESSAGES = {
    ClaimReason.INVALID_ADDRESS: "Wallet address is not valid",
    ClaimReason.IN_FLIGHT: "A claim for this wallet is already in progress",
    ClaimReason.REQUIRES_RETRY: "Previous claim did not complete; contact support",
    ClaimReason.SUBMISSION_REJECTED: "The mint transaction was rejected",
    ClaimReason.PROCESSING: "Transaction is processing; check status later",
    ClaimReason.CHAIN_UNAVAILABLE: "Network is busy; your claim will be retried",
    ClaimReason.AWAITING_CONFIRMATION: "Transaction sent; waiting for confirmation",
}


@dataclass(frozen=True)
class ClaimResult:
    """
    Outcome of a claim or retry request.

    Never carries raw chain error text.
    """

    status: ClaimOutcome
    address: Optional[str] = None
    transaction_id: Optional[str] = None
    explorer_url: Optional[str] = None
    reason: Optional[ClaimReason] = None
    idempotent: bool = False

    @classmethod
    def confirmed(
        cls,
        address: str,
        transaction_ref: TransactionRef,
        explorer_base: str,
        idempotent: bool = False,
    ) -> "ClaimResult":
        return cls(
            status=ClaimOutcome.CONFIRMED,
            address=address,
            transaction_id=transaction_ref.to_storage(),
            explorer_url=transaction_ref.explorer_url(explorer_base),
            idempotent=idempotent,
        )

    @classmethod
    def pending(
        cls,
        address: str,
        reason: ClaimReason,
        transaction_ref: Optional[TransactionRef] = None,
        explorer_base: Optional[str] = None,
    ) -> "ClaimResult":
        explorer_url = None
        if transaction_ref is not None and explorer_base:
            explorer_url = transaction_ref.explorer_url(explorer_base)
        return cls(
            status=ClaimOutcome.PENDING,
            address=address,
            transaction_id=transaction_ref.to_storage() if transaction_ref else None,
            explorer_url=explorer_url,
            reason=reason,
        )

    @classmethod
    def rejected(cls, address: Optional[str], reason: ClaimReason) -> "ClaimResult":
        return cls(status=ClaimOutcome.REJECTED, address=address, reason=reason)

    @property
    def message(self) -> str:
        if self.reason is None:
            return "Already claimed" if self.idempotent else "Tokens minted"
        return _MESSAGES[self.reason]

    def to_dict(self) -> dict:
        """Convert result to dictionary representation."""
        return {
            "status": self.status.value,
            "address": self.address,
            "transaction_id": self.transaction_id,
            "explorer_url": self.explorer_url,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "idempotent": self.idempotent,
        }
