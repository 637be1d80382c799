"""
Unit tests for BonusSideEffector.

Usage:
    laborant monnayeur --unit
"""

from decimal import Decimal
from typing import List

import pytest

from monnayeur.application.services.bonus_side_effector import (
    BonusOutcome,
    BonusPolicy,
    BonusSideEffector,
    BonusType,
)
from monnayeur.domain.entities.claim_record import ClaimRecord, ClaimStatus
from monnayeur.domain.entities.referral_bonus import ReferralBonus
from monnayeur.domain.exceptions import ChainUnavailableError, SubmissionPendingError
from monnayeur.domain.repositories.i_referral_bonus_repository import (
    IReferralBonusRepository,
)
from monnayeur.domain.value_objects.transaction_ref import RealTx
from monnayeur.domain.value_objects.wallet_address import WalletAddress
from tests.helpers import LaborantTest, make_address, make_tx_hash

CLAIMANT = WalletAddress.parse(make_address(1))
REFERRER = WalletAddress.parse(make_address(2))
FALLBACK = WalletAddress.parse(make_address(3))


class ListReferralBonusRepository(IReferralBonusRepository):
    def __init__(self):
        self.rows: List[ReferralBonus] = []

    async def create(self, bonus: ReferralBonus) -> ReferralBonus:
        self.rows.append(bonus)
        return bonus

    async def list_by_referrer(self, referrer_address):
        return [r for r in self.rows if r.referrer_address == referrer_address]


def confirmed_record(referrer=None, mint_amount="2", address=CLAIMANT):
    return ClaimRecord(
        address=address,
        status=ClaimStatus.CONFIRMED,
        transaction_ref=RealTx(make_tx_hash(1)),
        mint_amount=Decimal(mint_amount),
        referrer_address=referrer,
        referrer_code="ALPHA" if referrer else None,
    )


class TestBonusSideEffector(LaborantTest):
    """Unit tests for BonusSideEffector."""

    component_name = "monnayeur"
    test_category = "unit"

    @pytest.fixture
    def repository(self):
        return ListReferralBonusRepository()

    def _effector(self, ledger, repository, **policy):
        policy.setdefault("fallback_address", FALLBACK)
        return BonusSideEffector(ledger, repository, BonusPolicy(**policy))

    # ================================================================
    # Award tests
    # ================================================================

    async def test_referrer_receives_fixed_bonus(self, ledger, repository):
        """Test referred claim mints fixed bonus and writes audit row."""
        self.reporter.info("Testing fixed referral bonus", context="Test")

        effector = self._effector(ledger, repository, fixed_amount=Decimal("2"))

        outcome = await effector.award(confirmed_record(referrer=REFERRER))

        assert outcome == BonusOutcome.AWARDED
        assert ledger.mint_calls == [(REFERRER.address, Decimal("2"))]
        assert len(repository.rows) == 1
        row = repository.rows[0]
        assert row.referred_address == CLAIMANT
        assert row.referral_code == "ALPHA"
        assert row.tx_hash in ledger.receipts

    async def test_percentage_bonus_rounds_down(self, ledger, repository):
        """Test percentage bonus is floored to whole tokens."""
        effector = self._effector(
            ledger, repository, bonus_type=BonusType.PERCENTAGE, percent=Decimal("10")
        )

        outcome = await effector.award(confirmed_record(REFERRER, mint_amount="25"))

        assert outcome == BonusOutcome.AWARDED
        assert ledger.mint_calls == [(REFERRER.address, Decimal("2"))]

    async def test_percentage_bonus_below_one_token_skipped(self, ledger, repository):
        """Test bonus that rounds to zero is not minted."""
        effector = self._effector(
            ledger, repository, bonus_type=BonusType.PERCENTAGE, percent=Decimal("10")
        )

        outcome = await effector.award(confirmed_record(REFERRER, mint_amount="2"))

        assert outcome == BonusOutcome.SKIPPED
        assert ledger.write_count == 0

    async def test_no_referrer_mints_silent_bonus(self, ledger, repository):
        """Test unreferred claim mints silent bonus without audit row."""
        self.reporter.info("Testing silent bonus", context="Test")

        effector = self._effector(ledger, repository, silent_amount=Decimal("1"))

        outcome = await effector.award(confirmed_record())

        assert outcome == BonusOutcome.SILENT
        assert ledger.mint_calls == [(FALLBACK.address, Decimal("1"))]
        assert repository.rows == []

    # ================================================================
    # Skip tests
    # ================================================================

    async def test_disabled_policy(self, ledger, repository):
        """Test disabled bonuses mint nothing."""
        effector = self._effector(ledger, repository, enabled=False)

        assert await effector.award(confirmed_record(REFERRER)) == BonusOutcome.SKIPPED
        assert ledger.write_count == 0

    async def test_self_referral_ignored(self, ledger, repository):
        """Test a wallet cannot refer itself."""
        effector = self._effector(ledger, repository)

        outcome = await effector.award(confirmed_record(referrer=CLAIMANT))

        assert outcome == BonusOutcome.SKIPPED
        assert ledger.write_count == 0

    async def test_fallback_claimant_earns_nothing(self, ledger, repository):
        """Test fallback beneficiary's own claim earns no bonus."""
        effector = self._effector(ledger, repository)

        outcome = await effector.award(confirmed_record(address=FALLBACK))

        assert outcome == BonusOutcome.SKIPPED
        assert ledger.write_count == 0

    async def test_unconfirmed_claim_skipped(self, ledger, repository):
        """Test pending claims never earn a bonus."""
        effector = self._effector(ledger, repository)
        record = ClaimRecord(address=CLAIMANT, status=ClaimStatus.PENDING)

        assert await effector.award(record) == BonusOutcome.SKIPPED

    # ================================================================
    # Failure tests
    # ================================================================

    async def test_ledger_failure_reported_not_raised(self, ledger, repository):
        """Test bonus mint failure yields FAILED without raising."""
        self.reporter.info("Testing bonus failure containment", context="Test")

        ledger.mint_error = ChainUnavailableError("rpc down", "mint")
        effector = self._effector(ledger, repository)

        outcome = await effector.award(confirmed_record(REFERRER))

        assert outcome == BonusOutcome.FAILED
        assert repository.rows == []

    async def test_pending_bonus_still_recorded(self, ledger, repository):
        """Test broadcast bonus is recorded with its hash."""
        tx = make_tx_hash(9)
        ledger.mint_error = SubmissionPendingError(tx)
        effector = self._effector(ledger, repository)

        outcome = await effector.award(confirmed_record(REFERRER))

        assert outcome == BonusOutcome.AWARDED
        assert repository.rows[0].tx_hash == tx
