"""
Integration tests for ClaimStore and ReferralBonusRepository.

Runs against SQLite by default; set MONNAYEUR_TEST_DATABASE_URL to a
postgresql+asyncpg URL to run the same tests on PostgreSQL.

Usage:
    laborant monnayeur --integration
"""

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from monnayeur.domain.entities.claim_record import ClaimStatus
from monnayeur.domain.entities.referral_bonus import ReferralBonus
from monnayeur.domain.exceptions import ClaimNotFoundError, InvalidClaimStateError
from monnayeur.domain.repositories.i_claim_store import BeginClaimOutcome
from monnayeur.domain.value_objects.transaction_ref import (
    AlreadyFunded,
    RealTx,
    SyncedExternally,
)
from monnayeur.domain.value_objects.wallet_address import WalletAddress
from monnayeur.infrastructure.persistence.repositories.claim_store import ClaimStore
from monnayeur.infrastructure.persistence.repositories.referral_bonus_repository import (
    ReferralBonusRepository,
)
from tests.helpers import LaborantTest, make_address, make_tx_hash

NOW = datetime(2026, 1, 15, 12, 0, 0)
LEASE = timedelta(minutes=10)
WINDOW = timedelta(minutes=30)
WALLET = WalletAddress.parse(make_address(0xC1))


class TestClaimStore(LaborantTest):
    """Integration tests for ClaimStore."""

    component_name = "monnayeur"
    test_category = "integration"

    @pytest.fixture
    def store(self, database):
        return ClaimStore(database)

    async def _begin(self, store, wallet=WALLET, now=NOW):
        return await store.begin_claim(
            wallet, Decimal("2"), now=now, stale_before=now - LEASE
        )

    # ================================================================
    # begin_claim tests
    # ================================================================

    async def test_begin_claim_inserts_pending(self, store):
        """Test first claim creates a PENDING record."""
        self.reporter.info("Testing begin_claim insert", context="Test")

        result = await self._begin(store)

        assert result.outcome == BeginClaimOutcome.ACQUIRED
        assert result.record.status == ClaimStatus.PENDING
        assert result.record.submitted_at == NOW
        assert result.record.mint_amount == Decimal("2")
        assert result.record.transaction_ref is None

    async def test_begin_claim_second_caller_in_flight(self, store):
        """Test second claim on a fresh PENDING record is refused."""
        await self._begin(store)

        result = await self._begin(store, now=NOW + timedelta(seconds=5))

        assert result.outcome == BeginClaimOutcome.IN_FLIGHT

    async def test_begin_claim_registered_wallet(self, store):
        """Test UNCLAIMED record is acquired."""
        await store.register(WALLET, Decimal("2"))

        result = await self._begin(store)

        assert result.outcome == BeginClaimOutcome.ACQUIRED

    async def test_begin_claim_takes_over_orphan(self, store):
        """Test unsubmitted PENDING record past its lease is acquired again."""
        self.reporter.info("Testing lease takeover", context="Test")

        await self._begin(store)

        result = await self._begin(store, now=NOW + LEASE + timedelta(seconds=1))

        assert result.outcome == BeginClaimOutcome.ACQUIRED
        assert result.record.submitted_at == NOW + LEASE + timedelta(seconds=1)

    async def test_begin_claim_never_takes_over_submitted(self, store):
        """Test PENDING record with a transaction is never re-acquired."""
        await self._begin(store)
        await store.attach_transaction(WALLET, RealTx(make_tx_hash(1)))

        result = await self._begin(store, now=NOW + timedelta(hours=2))

        assert result.outcome == BeginClaimOutcome.IN_FLIGHT

    async def test_begin_claim_confirmed_and_failed(self, store):
        """Test terminal records report their outcome."""
        confirmed = WalletAddress.parse(make_address(1))
        failed = WalletAddress.parse(make_address(2))
        await self._begin(store, confirmed)
        await store.finalize_success(confirmed, RealTx(make_tx_hash(1)), NOW)
        await self._begin(store, failed)
        await store.finalize_failure(failed)

        assert (await self._begin(store, confirmed)).outcome == (
            BeginClaimOutcome.ALREADY_CONFIRMED
        )
        assert (await self._begin(store, failed)).outcome == (
            BeginClaimOutcome.REQUIRES_RETRY
        )

    async def test_concurrent_begin_claim_single_winner(self, store):
        """Test concurrent begin_claim calls acquire exactly once."""
        self.reporter.info("Testing concurrent begin_claim", context="Test")

        results = await asyncio.gather(*(self._begin(store) for _ in range(5)))

        outcomes = [r.outcome for r in results]
        assert outcomes.count(BeginClaimOutcome.ACQUIRED) == 1
        assert outcomes.count(BeginClaimOutcome.IN_FLIGHT) == 4
        self.reporter.info("Exactly one winner", context="Test")

    # ================================================================
    # Transition tests
    # ================================================================

    async def test_finalize_success(self, store):
        """Test PENDING record is confirmed with its transaction."""
        await self._begin(store)
        tx = RealTx(make_tx_hash(2))

        record = await store.finalize_success(WALLET, tx, NOW + timedelta(seconds=3))

        assert record.status == ClaimStatus.CONFIRMED
        assert record.transaction_ref == tx
        assert record.confirmed_at == NOW + timedelta(seconds=3)

    async def test_finalize_success_is_idempotent(self, store):
        """Test confirming twice with the same reference is a no-op."""
        await self._begin(store)
        tx = RealTx(make_tx_hash(3))
        await store.finalize_success(WALLET, tx, NOW)

        record = await store.finalize_success(WALLET, tx, NOW + timedelta(minutes=1))

        assert record.confirmed_at == NOW

    async def test_finalize_success_conflicting_reference(self, store):
        """Test a different transaction cannot overwrite a confirmation."""
        await self._begin(store)
        await store.finalize_success(WALLET, RealTx(make_tx_hash(4)), NOW)

        with pytest.raises(InvalidClaimStateError):
            await store.finalize_success(WALLET, RealTx(make_tx_hash(5)), NOW)

    async def test_sentinel_references_round_trip(self, store):
        """Test marker references are stored and read back."""
        funded = WalletAddress.parse(make_address(3))
        synced = WalletAddress.parse(make_address(4))
        await self._begin(store, funded)
        await self._begin(store, synced)

        await store.finalize_success(funded, AlreadyFunded(), NOW)
        await store.finalize_success(synced, SyncedExternally(), NOW)

        assert (await store.get(funded)).transaction_ref == AlreadyFunded()
        assert (await store.get(synced)).transaction_ref == SyncedExternally()

    async def test_finalize_failure_only_from_pending(self, store):
        """Test failure transition requires PENDING."""
        await self._begin(store)

        assert await store.finalize_failure(WALLET) is True
        assert await store.finalize_failure(WALLET) is False
        assert (await store.get(WALLET)).status == ClaimStatus.FAILED

    async def test_attach_transaction(self, store):
        """Test transaction is attached once."""
        await self._begin(store)
        tx = RealTx(make_tx_hash(6))

        record = await store.attach_transaction(WALLET, tx)
        again = await store.attach_transaction(WALLET, tx)

        assert record.transaction_ref == tx
        assert again.transaction_ref == tx
        with pytest.raises(InvalidClaimStateError):
            await store.attach_transaction(WALLET, RealTx(make_tx_hash(7)))

    async def test_attach_transaction_unknown_wallet(self, store):
        """Test attaching to a missing record."""
        with pytest.raises(ClaimNotFoundError):
            await store.attach_transaction(WALLET, RealTx(make_tx_hash(8)))

    # ================================================================
    # Timeout & retry tests
    # ================================================================

    async def test_mark_timeout_respects_window(self, store):
        """Test only records older than the window time out."""
        self.reporter.info("Testing timeout window", context="Test")

        await self._begin(store)

        assert await store.mark_timeout(WALLET, NOW + timedelta(minutes=29), WINDOW) is False
        assert await store.mark_timeout(WALLET, NOW + timedelta(minutes=31), WINDOW) is True
        assert (await store.get(WALLET)).status == ClaimStatus.TIMEOUT

    async def test_mark_timeout_loses_to_success(self, store):
        """Test a confirmed record cannot be timed out."""
        await self._begin(store)
        await store.finalize_success(WALLET, RealTx(make_tx_hash(9)), NOW)

        assert await store.mark_timeout(WALLET, NOW + timedelta(hours=1), WINDOW) is False
        assert (await store.get(WALLET)).status == ClaimStatus.CONFIRMED

    async def test_late_confirmation_from_timeout(self, store):
        """Test TIMEOUT record is confirmed by its real transaction."""
        self.reporter.info("Testing late confirmation", context="Test")

        tx = RealTx(make_tx_hash(10))
        await self._begin(store)
        await store.attach_transaction(WALLET, tx)
        await store.mark_timeout(WALLET, NOW + timedelta(hours=1), WINDOW)

        timed_out = await store.list_timed_out_with_tx()
        assert [r.address for r in timed_out] == [WALLET]

        record = await store.finalize_success(WALLET, tx, NOW + timedelta(hours=2))
        assert record.status == ClaimStatus.CONFIRMED

    async def test_marker_cannot_rescue_timeout(self, store):
        """Test sentinel references do not confirm a TIMEOUT record."""
        await self._begin(store)
        await store.mark_timeout(WALLET, NOW + timedelta(hours=1), WINDOW)

        with pytest.raises(InvalidClaimStateError):
            await store.finalize_success(WALLET, AlreadyFunded(), NOW)

    async def test_reset_for_retry(self, store):
        """Test FAILED record is reset to PENDING without transaction."""
        tx = RealTx(make_tx_hash(11))
        await self._begin(store)
        await store.attach_transaction(WALLET, tx)
        await store.finalize_failure(WALLET)

        later = NOW + timedelta(minutes=5)
        record = await store.reset_for_retry(WALLET, later)

        assert record.status == ClaimStatus.PENDING
        assert record.transaction_ref is None
        assert record.submitted_at == later

    async def test_reset_for_retry_refuses_other_states(self, store):
        """Test retry of a PENDING record raises and changes nothing."""
        self.reporter.info("Testing retry refusal", context="Test")

        tx = RealTx(make_tx_hash(12))
        await self._begin(store)
        await store.attach_transaction(WALLET, tx)

        with pytest.raises(InvalidClaimStateError):
            await store.reset_for_retry(WALLET, NOW + timedelta(minutes=5))

        record = await store.get(WALLET)
        assert record.status == ClaimStatus.PENDING
        assert record.transaction_ref == tx
        assert record.submitted_at == NOW

    async def test_reset_for_retry_unknown(self, store):
        """Test retry of missing record."""
        with pytest.raises(ClaimNotFoundError):
            await store.reset_for_retry(WALLET, NOW)

    # ================================================================
    # Registration & listing tests
    # ================================================================

    async def test_register_is_idempotent(self, store):
        """Test registering twice keeps the first record."""
        first = await store.register(WALLET, Decimal("2"))
        second = await store.register(WALLET, Decimal("5"))

        assert first.status == ClaimStatus.UNCLAIMED
        assert second.mint_amount == Decimal("2")

    async def test_set_referrer_once(self, store):
        """Test referrer is written at most once."""
        self.reporter.info("Testing referrer write-once", context="Test")

        referrer = WalletAddress.parse(make_address(5))
        other = WalletAddress.parse(make_address(6))
        await store.register(WALLET, Decimal("2"))

        assert await store.set_referrer(WALLET, referrer, "ALPHA") is True
        assert await store.set_referrer(WALLET, other, "BETA") is False
        assert await store.set_referrer(WALLET, WALLET) is False

        record = await store.get(WALLET)
        assert record.referrer_address == referrer
        assert record.referrer_code == "ALPHA"

    async def test_list_unminted_respects_lease(self, store):
        """Test unminted listing includes orphans and skips live claims."""
        registered = WalletAddress.parse(make_address(7))
        orphan = WalletAddress.parse(make_address(8))
        live = WalletAddress.parse(make_address(9))
        await store.register(registered, Decimal("2"))
        await self._begin(store, orphan, now=NOW - timedelta(minutes=20))
        await self._begin(store, live, now=NOW - timedelta(minutes=1))

        unminted = await store.list_unminted(NOW - LEASE)

        assert {r.address for r in unminted} == {registered, orphan}

    async def test_stale_and_pending_listings(self, store):
        """Test reconciliation listings partition pending records."""
        submitted = WalletAddress.parse(make_address(10))
        stale = WalletAddress.parse(make_address(11))
        await self._begin(store, submitted)
        await store.attach_transaction(submitted, RealTx(make_tx_hash(13)))
        await self._begin(store, stale, now=NOW - timedelta(hours=1))

        with_tx = await store.list_pending_with_tx()
        unsubmitted = await store.list_stale_unsubmitted(NOW - WINDOW)

        assert [r.address for r in with_tx] == [submitted]
        assert [r.address for r in unsubmitted] == [stale]

    async def test_count_by_status(self, store):
        """Test counts include every status."""
        await store.register(WALLET, Decimal("2"))
        await self._begin(store, WalletAddress.parse(make_address(12)))

        counts = await store.count_by_status()

        assert counts[ClaimStatus.UNCLAIMED] == 1
        assert counts[ClaimStatus.PENDING] == 1
        assert counts[ClaimStatus.CONFIRMED] == 0

    async def test_terminal_failed_listing(self, store):
        """Test failed and timed-out records are listed for retry."""
        failed = WalletAddress.parse(make_address(13))
        timed_out = WalletAddress.parse(make_address(14))
        await self._begin(store, failed)
        await store.finalize_failure(failed)
        await self._begin(store, timed_out)
        await store.mark_timeout(timed_out, NOW + timedelta(hours=1), WINDOW)

        records = await store.list_terminal_failed()

        assert {r.address for r in records} == {failed, timed_out}


class TestReferralBonusRepository(LaborantTest):
    """Integration tests for ReferralBonusRepository."""

    component_name = "monnayeur"
    test_category = "integration"

    async def test_create_and_list(self, database):
        """Test bonus rows are stored and listed per referrer."""
        self.reporter.info("Testing referral bonus persistence", context="Test")

        repository = ReferralBonusRepository(database)
        referrer = WalletAddress.parse(make_address(20))

        for n in (21, 22):
            await repository.create(
                ReferralBonus(
                    referrer_address=referrer,
                    referred_address=WalletAddress.parse(make_address(n)),
                    bonus_amount=Decimal("2"),
                    tx_hash=make_tx_hash(n),
                    referral_code="ALPHA",
                    created_at=NOW + timedelta(minutes=n),
                )
            )

        rows = await repository.list_by_referrer(referrer)

        assert [r.referred_address.address for r in rows] == [
            make_address(22),
            make_address(21),
        ]
        assert rows[0].bonus_amount == Decimal("2")
        assert await repository.list_by_referrer(WalletAddress.parse(make_address(23))) == []
