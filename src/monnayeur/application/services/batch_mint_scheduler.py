"""
Batch mint scheduler - mints registered wallets in gas-efficient batches.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional

from monnayeur.application.dto.claim_result import ClaimOutcome, ClaimReason
from monnayeur.application.dto.job_results import BatchJob, BatchRunResult
from monnayeur.application.services.claim_orchestrator import ClaimOrchestrator
from monnayeur.domain.exceptions import LedgerError, SubmissionPendingError
from monnayeur.domain.repositories.i_claim_store import IClaimStore
from monnayeur.domain.services.clock import IClock, SystemClock
from monnayeur.domain.services.i_ledger_gateway import ILedgerGateway
from monnayeur.domain.value_objects.transaction_ref import (
    AlreadyFunded,
    RealTx,
    SyncedExternally,
)
from monnayeur.domain.value_objects.wallet_address import (
    WalletAddress,
    dedupe_addresses,
)
from monnayeur.infrastructure.monitoring.logger import get_logger
from monnayeur.infrastructure.monitoring.metrics import batch_results_total

logger = get_logger(__name__)


class BatchMintScheduler:
    """
    Periodic minting of wallets that registered but were never minted.

    Business rules:
    - Wallets are acquired through begin_claim, the same serialization
      point as interactive claims
    - A wallet whose interactive mint is still running in this process
      is skipped even after its lease expires
    - Wallets already holding tokens are confirmed without a mint
    - One batchMint per batch; all recipients share the transaction
    - A failed batch degrades to individual mints, one wallet's failure
      never blocks the others
    - Balance lookups here are tolerant: a failed lookup counts as zero
    """

    def __init__(
        self,
        claim_store: IClaimStore,
        ledger: ILedgerGateway,
        orchestrator: ClaimOrchestrator,
        clock: Optional[IClock] = None,
        mint_amount: Decimal = Decimal("2"),
        batch_size: int = 50,
        skip_balance_check: bool = False,
        claim_lease: timedelta = timedelta(minutes=10),
        call_timeout: float = 30.0,
    ):
        """
        Initialize scheduler.

        Args:
            claim_store: Durable claim records
            ledger: Token contract gateway
            orchestrator: Used for per-wallet fallback mints
            clock: Time source (default: system UTC clock)
            mint_amount: Tokens minted to each wallet
            batch_size: Maximum recipients per batchMint
            skip_balance_check: Mint without checking existing balances
            claim_lease: Age after which an unsubmitted PENDING claim
                may be taken over
            call_timeout: Per-wallet balance lookup timeout in seconds
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.claim_store = claim_store
        self.ledger = ledger
        self.orchestrator = orchestrator
        self.clock = clock or SystemClock()
        self.mint_amount = Decimal(mint_amount)
        self.batch_size = batch_size
        self.skip_balance_check = skip_balance_check
        self.claim_lease = claim_lease
        self.call_timeout = call_timeout

        self._lock = asyncio.Lock()

    async def run_batch(self) -> BatchRunResult:
        """
        Discover unminted wallets and mint them in batches.

        Returns:
            BatchRunResult with per-stage counts
        """
        async with self._lock:
            result = BatchRunResult()
            now = self.clock.now()

            records = await self.claim_store.list_unminted(now - self.claim_lease)
            result.candidates = len(records)
            if not records:
                logger.debug("Batch run: no unminted wallets")
                return result

            addresses, duplicates = dedupe_addresses(r.address for r in records)
            result.duplicates_dropped = duplicates
            if duplicates:
                logger.info(f"Batch run dropped {duplicates} duplicate addresses")

            for start in range(0, len(addresses), self.batch_size):
                job = BatchJob(
                    addresses=tuple(addresses[start : start + self.batch_size]),
                    amount=self.mint_amount,
                )
                result.batches += 1
                await self._run_job(job, result)

            logger.info(f"Batch run finished: {result.to_dict()}", extra={"job": "batch"})
            return result

    async def sync_with_chain(self) -> int:
        """
        Confirm unminted wallets that already hold tokens on chain.

        Wallets whose balance cannot be read are left untouched.

        Returns:
            Number of claims marked as synced
        """
        async with self._lock:
            now = self.clock.now()
            records = await self.claim_store.list_unminted(now - self.claim_lease)
            synced = 0

            for record in records:
                try:
                    balance = await asyncio.wait_for(
                        self.ledger.balance_of(record.address),
                        timeout=self.call_timeout,
                    )
                except (LedgerError, asyncio.TimeoutError) as e:
                    logger.warning(
                        f"Sync skipped {record.address.truncated()}: {e}"
                    )
                    continue

                if balance <= 0 or self.orchestrator.is_in_flight(record.address):
                    continue

                begin = await self.claim_store.begin_claim(
                    record.address,
                    record.mint_amount or self.mint_amount,
                    now=now,
                    stale_before=now - self.claim_lease,
                )
                if not begin.acquired:
                    continue

                await self.claim_store.finalize_success(
                    record.address, SyncedExternally(), now
                )
                synced += 1

            logger.info(f"Chain sync finished: {synced} of {len(records)} wallets synced")
            return synced

    # ================================================================
    # Internals
    # ================================================================

    async def _run_job(self, job: BatchJob, result: BatchRunResult) -> None:
        now = self.clock.now()

        # 1. Take ownership
        acquired: List[WalletAddress] = []
        for address in job.addresses:
            if self.orchestrator.is_in_flight(address):
                logger.info(f"Batch skipped {address.truncated()}: mint still running")
                result.skipped += 1
                continue
            begin = await self.claim_store.begin_claim(
                address, job.amount, now=now, stale_before=now - self.claim_lease
            )
            if begin.acquired:
                acquired.append(address)
            else:
                result.skipped += 1
        result.acquired += len(acquired)

        # 2. Split off wallets that already hold tokens
        to_mint = acquired
        if not self.skip_balance_check and acquired:
            balances = await asyncio.gather(
                *(self._tolerant_balance(address) for address in acquired)
            )
            to_mint = []
            for address, balance in zip(acquired, balances):
                if balance > 0:
                    await self.claim_store.finalize_success(address, AlreadyFunded(), now)
                    result.already_funded += 1
                    batch_results_total.labels(result="already_funded").inc()
                else:
                    to_mint.append(address)

        if not to_mint:
            return

        # 3. One transaction for the batch
        mint_job = BatchJob(addresses=tuple(to_mint), amount=job.amount)
        try:
            tx_hash = await self.ledger.batch_mint(mint_job.addresses, mint_job.amounts)
        except SubmissionPendingError as e:
            tx_ref = RealTx(e.tx_hash)
            for address in mint_job.addresses:
                await self.claim_store.attach_transaction(address, tx_ref)
            result.awaiting_confirmation += len(mint_job)
            result.transaction_ids.append(tx_ref.tx_hash)
            batch_results_total.labels(result="awaiting_confirmation").inc(len(mint_job))
            logger.warning(
                f"Batch of {len(mint_job)} broadcast, awaiting confirmation: {e.tx_hash}"
            )
            return
        except LedgerError as e:
            logger.error(
                f"Batch mint of {len(mint_job)} wallets failed ({e.code}); "
                f"falling back to individual mints"
            )
            await self._fallback(mint_job, result)
            return

        tx_ref = RealTx(tx_hash)
        now = self.clock.now()
        for address in mint_job.addresses:
            await self.claim_store.finalize_success(address, tx_ref, now)
        result.minted += len(mint_job)
        result.transaction_ids.append(tx_ref.tx_hash)
        batch_results_total.labels(result="minted").inc(len(mint_job))
        logger.info(
            f"Batch minted {len(mint_job)} wallets: {tx_ref.tx_hash}",
            extra={"job": "batch", "tx_hash": tx_ref.tx_hash},
        )

    async def _fallback(self, job: BatchJob, result: BatchRunResult) -> None:
        for address in job.addresses:
            try:
                outcome = await self.orchestrator.mint_and_finalize(
                    address, job.amount, award_bonus=False
                )
            except Exception as e:
                logger.error(
                    f"Fallback mint for {address.truncated()} failed: {e}",
                    exc_info=True,
                )
                result.fallback_failed += 1
                batch_results_total.labels(result="fallback_failed").inc()
                continue

            if outcome.status == ClaimOutcome.CONFIRMED:
                result.fallback_minted += 1
                result.transaction_ids.append(outcome.transaction_id)
                batch_results_total.labels(result="fallback_minted").inc()
            elif outcome.reason == ClaimReason.AWAITING_CONFIRMATION:
                result.awaiting_confirmation += 1
                batch_results_total.labels(result="awaiting_confirmation").inc()
            else:
                result.fallback_failed += 1
                batch_results_total.labels(result="fallback_failed").inc()

    async def _tolerant_balance(self, address: WalletAddress) -> Decimal:
        try:
            return await asyncio.wait_for(
                self.ledger.balance_of(address), timeout=self.call_timeout
            )
        except (LedgerError, asyncio.TimeoutError) as e:
            logger.warning(
                f"Balance check for {address.truncated()} failed, assuming zero: {e}"
            )
            return Decimal("0")
