"""
Claim store interface.

Every mutating operation is atomic with respect to a single record.
Callers never read a record, decide, and write it back; they call one
of the compare-and-transition operations below instead.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from monnayeur.domain.entities.claim_record import ClaimRecord, ClaimStatus
from monnayeur.domain.value_objects.transaction_ref import TransactionRef
from monnayeur.domain.value_objects.wallet_address import WalletAddress


class BeginClaimOutcome(str, Enum):
    """Result of trying to take ownership of a wallet's claim."""

    ACQUIRED = "acquired"
    ALREADY_CONFIRMED = "already_confirmed"
    IN_FLIGHT = "in_flight"
    REQUIRES_RETRY = "requires_retry"


@dataclass(frozen=True)
class BeginClaimResult:
    """Outcome of begin_claim plus the record as seen after the call."""

    outcome: BeginClaimOutcome
    record: ClaimRecord

    @property
    def acquired(self) -> bool:
        return self.outcome == BeginClaimOutcome.ACQUIRED


class IClaimStore(ABC):
    """Interface for durable claim record operations."""

    @abstractmethod
    async def get(self, address: WalletAddress) -> Optional[ClaimRecord]:
        """Get claim record by address, None if absent."""

    @abstractmethod
    async def register(
        self, address: WalletAddress, mint_amount: Decimal
    ) -> ClaimRecord:
        """
        Register claim intent as UNCLAIMED if no record exists.

        Args:
            address: Wallet address
            mint_amount: Tokens the wallet is entitled to

        Returns:
            Existing or newly created record
        """

    @abstractmethod
    async def set_referrer(
        self,
        address: WalletAddress,
        referrer_address: WalletAddress,
        referrer_code: Optional[str] = None,
    ) -> bool:
        """
        Attach a referrer, only if none is set yet.

        Returns:
            True if written, False if a referrer was already present
                or the record does not exist
        """

    @abstractmethod
    async def begin_claim(
        self,
        address: WalletAddress,
        mint_amount: Decimal,
        now: datetime,
        stale_before: datetime,
    ) -> BeginClaimResult:
        """
        Atomically take ownership of a wallet's claim.

        Inserts a PENDING record if none exists, moves UNCLAIMED to
        PENDING, or takes over a PENDING record that never received a
        transaction and whose submission started before stale_before.

        Args:
            address: Wallet address
            mint_amount: Amount to record for the claim
            now: Submission timestamp
            stale_before: Lease cutoff for orphaned submissions

        Returns:
            BeginClaimResult with the outcome and current record
        """

    @abstractmethod
    async def attach_transaction(
        self, address: WalletAddress, transaction_ref: TransactionRef
    ) -> ClaimRecord:
        """
        Store transaction reference on a PENDING record lacking one.

        Raises:
            ClaimNotFoundError: If no record exists
            InvalidClaimStateError: If not PENDING or already has a
                different transaction
        """

    @abstractmethod
    async def finalize_success(
        self,
        address: WalletAddress,
        transaction_ref: TransactionRef,
        now: datetime,
    ) -> ClaimRecord:
        """
        Mark claim CONFIRMED.

        Allowed from PENDING, and from TIMEOUT when the chain later
        confirms a real transaction (the stored one, or a submission
        whose hash was never recorded). No-op if already CONFIRMED with
        the same reference.

        Raises:
            ClaimNotFoundError: If no record exists
            InvalidClaimStateError: For any other state
        """

    @abstractmethod
    async def finalize_failure(self, address: WalletAddress) -> bool:
        """
        Move PENDING claim to FAILED.

        Returns:
            True if transitioned, False if record was not PENDING
        """

    @abstractmethod
    async def mark_timeout(
        self, address: WalletAddress, now: datetime, window: timedelta
    ) -> bool:
        """
        Move PENDING claim to TIMEOUT if submitted before now - window.

        The age check runs inside the update, so a concurrent success
        always wins.

        Returns:
            True if transitioned
        """

    @abstractmethod
    async def reset_for_retry(
        self, address: WalletAddress, now: datetime
    ) -> ClaimRecord:
        """
        Reset FAILED/TIMEOUT claim to PENDING and clear its transaction.

        Raises:
            ClaimNotFoundError: If no record exists
            InvalidClaimStateError: If status is not FAILED or TIMEOUT
        """

    @abstractmethod
    async def list_pending_with_tx(self) -> List[ClaimRecord]:
        """List PENDING claims that have a transaction reference."""

    @abstractmethod
    async def list_stale_unsubmitted(self, older_than: datetime) -> List[ClaimRecord]:
        """List PENDING claims without transaction submitted before cutoff."""

    @abstractmethod
    async def list_timed_out_with_tx(self) -> List[ClaimRecord]:
        """List TIMEOUT claims whose real transaction may still confirm."""

    @abstractmethod
    async def list_terminal_failed(self) -> List[ClaimRecord]:
        """List FAILED and TIMEOUT claims."""

    @abstractmethod
    async def list_unminted(self, stale_before: datetime) -> List[ClaimRecord]:
        """
        List claims awaiting a mint.

        Includes UNCLAIMED records and PENDING records without a
        transaction whose submission started before stale_before.
        """

    @abstractmethod
    async def count_by_status(self) -> Dict[ClaimStatus, int]:
        """Count claims grouped by status."""
