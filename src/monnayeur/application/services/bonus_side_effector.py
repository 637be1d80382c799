"""
Referral bonus side effect of a confirmed claim.

Best effort: nothing here can change the primary claim's outcome.
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Optional

from monnayeur.domain.entities.claim_record import ClaimRecord, ClaimStatus
from monnayeur.domain.entities.referral_bonus import ReferralBonus
from monnayeur.domain.exceptions import SubmissionPendingError
from monnayeur.domain.repositories.i_referral_bonus_repository import (
    IReferralBonusRepository,
)
from monnayeur.domain.services.i_ledger_gateway import ILedgerGateway
from monnayeur.domain.value_objects.wallet_address import WalletAddress
from monnayeur.infrastructure.monitoring.logger import get_logger
from monnayeur.infrastructure.monitoring.metrics import bonus_results_total

logger = get_logger(__name__)


class BonusType(str, Enum):
    """How the referral bonus amount is derived."""

    FIXED = "fixed"
    PERCENTAGE = "percentage"


class BonusOutcome(str, Enum):
    """Result of a bonus attempt."""

    AWARDED = "awarded"
    SILENT = "silent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class BonusPolicy:
    """Referral bonus configuration."""

    enabled: bool = True
    bonus_type: BonusType = BonusType.FIXED
    fixed_amount: Decimal = Decimal("2")
    percent: Decimal = Decimal("10")
    silent_amount: Decimal = Decimal("1")
    fallback_address: Optional[WalletAddress] = None

    def bonus_for(self, mint_amount: Decimal) -> Decimal:
        """Bonus owed to a referrer for a claim of mint_amount."""
        if self.bonus_type == BonusType.PERCENTAGE:
            raw = Decimal(mint_amount) * self.percent / Decimal(100)
            return raw.to_integral_value(rounding=ROUND_FLOOR)
        return self.fixed_amount


class BonusSideEffector:
    """
    Mint a referral bonus after a primary claim is confirmed.

    Business rules:
    - Only confirmed claims earn a bonus
    - Claims by the fallback beneficiary itself earn nothing
    - Self-referral earns nothing
    - No referrer: a smaller silent bonus goes to the fallback
      beneficiary and no audit row is written
    - Referrer present: bonus minted to the referrer and recorded
    - Every failure is logged and reported as FAILED, never raised
    """

    def __init__(
        self,
        ledger: ILedgerGateway,
        referral_bonus_repository: IReferralBonusRepository,
        policy: BonusPolicy,
    ):
        self.ledger = ledger
        self.referral_bonus_repository = referral_bonus_repository
        self.policy = policy

    async def award(self, record: ClaimRecord) -> BonusOutcome:
        """
        Award the bonus for a confirmed claim.

        Args:
            record: Confirmed claim record

        Returns:
            BonusOutcome describing what happened
        """
        try:
            outcome = await self._award(record)
        except Exception as e:
            logger.error(
                f"Referral bonus for {record.address.truncated()} failed: {e}",
                exc_info=True,
            )
            outcome = BonusOutcome.FAILED

        bonus_results_total.labels(result=outcome.value).inc()
        return outcome

    async def _award(self, record: ClaimRecord) -> BonusOutcome:
        policy = self.policy

        if not policy.enabled:
            return BonusOutcome.SKIPPED

        if record.status != ClaimStatus.CONFIRMED:
            logger.warning(
                f"Bonus requested for unconfirmed claim {record.address.truncated()}"
            )
            return BonusOutcome.SKIPPED

        if policy.fallback_address is not None and record.address == policy.fallback_address:
            return BonusOutcome.SKIPPED

        referrer = record.referrer_address
        if referrer is None:
            return await self._award_silent(record)

        if referrer == record.address:
            logger.warning(f"Self-referral ignored for {record.address.truncated()}")
            return BonusOutcome.SKIPPED

        amount = policy.bonus_for(record.mint_amount)
        if amount <= 0:
            return BonusOutcome.SKIPPED

        tx_hash = await self._mint(referrer, amount)

        await self.referral_bonus_repository.create(
            ReferralBonus(
                referrer_address=referrer,
                referred_address=record.address,
                bonus_amount=amount,
                tx_hash=tx_hash,
                referral_code=record.referrer_code,
            )
        )
        logger.info(
            f"Referral bonus {amount} minted to {referrer.truncated()} "
            f"for {record.address.truncated()} ({tx_hash})"
        )
        return BonusOutcome.AWARDED

    async def _award_silent(self, record: ClaimRecord) -> BonusOutcome:
        fallback = self.policy.fallback_address
        amount = self.policy.silent_amount
        if fallback is None or amount <= 0:
            return BonusOutcome.SKIPPED

        tx_hash = await self._mint(fallback, amount)
        logger.info(
            f"Silent bonus {amount} minted for {record.address.truncated()} ({tx_hash})"
        )
        return BonusOutcome.SILENT

    async def _mint(self, recipient: WalletAddress, amount: Decimal) -> str:
        """Mint bonus; a broadcast-but-unconfirmed bonus still counts."""
        try:
            return await self.ledger.mint(recipient, amount)
        except SubmissionPendingError as e:
            return e.tx_hash
