"""
Reconciliation sweeper - converges claim records with ledger truth.
"""

import asyncio
import time
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Iterable, Optional, Set, Union

from monnayeur.application.dto.job_results import SweepResult
from monnayeur.domain.entities.claim_record import ClaimRecord, ClaimStatus
from monnayeur.domain.exceptions import ClaimNotFoundError, LedgerError
from monnayeur.domain.repositories.i_claim_store import IClaimStore
from monnayeur.domain.services.clock import IClock, SystemClock
from monnayeur.domain.services.i_ledger_gateway import (
    ILedgerGateway,
    ReceiptStatus,
)
from monnayeur.domain.value_objects.transaction_ref import RealTx
from monnayeur.domain.value_objects.wallet_address import WalletAddress
from monnayeur.infrastructure.monitoring.logger import bind_wallet, get_logger
from monnayeur.infrastructure.monitoring.metrics import (
    sweep_duration_seconds,
    sweep_results_total,
)

logger = get_logger(__name__)

# Outcome names double as SweepResult field names
_CONFIRMED = "confirmed"
_FAILED = "failed"
_TIMEOUT = "timeout"
_STILL_PENDING = "still_pending"
_SKIPPED = "skipped"
_LATE_CONFIRMED = "late_confirmed"
_ERRORS = "errors"

RecordHandler = Callable[[ClaimRecord, datetime], Awaitable[Optional[str]]]


class ReconciliationSweeper:
    """
    Periodic convergence of PENDING claims against the ledger.

    Business rules:
    - Receipt success confirms, revert fails, anything else waits
    - A PENDING claim older than the timeout window never survives a
      sweep as PENDING, whether or not it has a transaction
    - A TIMEOUT claim whose transaction later succeeds is confirmed
    - One record's RPC failure never aborts the sweep
    - No address is mutated twice in one sweep
    """

    def __init__(
        self,
        claim_store: IClaimStore,
        ledger: ILedgerGateway,
        clock: Optional[IClock] = None,
        timeout_window: timedelta = timedelta(minutes=30),
        call_timeout: float = 30.0,
        concurrency: int = 10,
    ):
        """
        Initialize sweeper.

        Args:
            claim_store: Durable claim records
            ledger: Token contract gateway
            clock: Time source (default: system UTC clock)
            timeout_window: Age after which a PENDING claim times out
            call_timeout: Per-record receipt lookup timeout in seconds
            concurrency: Maximum receipt lookups in flight
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.claim_store = claim_store
        self.ledger = ledger
        self.clock = clock or SystemClock()
        self.timeout_window = timeout_window
        self.call_timeout = call_timeout
        self.concurrency = concurrency

        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def sweep(self) -> SweepResult:
        """
        Run one reconciliation pass over every open claim.

        Concurrent calls queue behind the running sweep.

        Returns:
            SweepResult with per-outcome counts
        """
        async with self._lock:
            started = time.perf_counter()
            now = self.clock.now()
            cutoff = now - self.timeout_window
            result = SweepResult()
            seen: Set[str] = set()
            semaphore = asyncio.Semaphore(self.concurrency)

            pending = await self.claim_store.list_pending_with_tx()
            await self._process(
                pending, self._reconcile_pending, now, result, seen, semaphore
            )

            # Pending claims that never got a transaction (crash, lost task)
            unsubmitted = await self.claim_store.list_stale_unsubmitted(cutoff)
            await self._process(
                unsubmitted, self._expire_unsubmitted, now, result, seen, semaphore
            )

            timed_out = await self.claim_store.list_timed_out_with_tx()
            await self._process(
                timed_out, self._reconcile_timed_out, now, result, seen, semaphore
            )

            for outcome, count in result.to_dict().items():
                if outcome != "total" and count:
                    sweep_results_total.labels(result=outcome).inc(count)
            sweep_duration_seconds.observe(time.perf_counter() - started)

            if result.total:
                logger.info(f"Sweep finished: {result.to_dict()}", extra={"job": "sweep"})
            else:
                logger.debug("Sweep finished: nothing to reconcile")
            return result

    async def reconcile_one(
        self, address: Union[str, WalletAddress]
    ) -> ClaimRecord:
        """
        Reconcile a single claim on demand (status check).

        Ledger failures are logged and the stored state returned as is.

        Raises:
            InvalidAddressError: If address is malformed
            ClaimNotFoundError: If the wallet has no claim
        """
        wallet = WalletAddress.parse(address)
        record = await self.claim_store.get(wallet)
        if record is None:
            raise ClaimNotFoundError(wallet.address)

        now = self.clock.now()
        handler = None
        if record.status == ClaimStatus.PENDING and record.transaction_ref is not None:
            handler = self._reconcile_pending
        elif record.status == ClaimStatus.PENDING and record.is_pending_older_than(
            now - self.timeout_window
        ):
            handler = self._expire_unsubmitted
        elif record.status == ClaimStatus.TIMEOUT and record.has_real_transaction:
            handler = self._reconcile_timed_out

        if handler is None:
            return record

        try:
            await handler(record, now)
        except (LedgerError, asyncio.TimeoutError) as e:
            logger.warning(f"Status check for {wallet.truncated()} incomplete: {e}")

        return await self.claim_store.get(wallet) or record

    # ================================================================
    # Per-record handlers
    # ================================================================

    async def _reconcile_pending(
        self, record: ClaimRecord, now: datetime
    ) -> Optional[str]:
        address = record.address

        if not isinstance(record.transaction_ref, RealTx):
            # Marker rows never had a submission; they are resolved already
            await self.claim_store.finalize_success(
                address, record.transaction_ref, now
            )
            logger.info(
                f"Claim {address.truncated()} resolved by marker "
                f"{record.transaction_ref.to_storage()}"
            )
            return _SKIPPED

        expired = record.is_pending_older_than(now - self.timeout_window)
        try:
            receipt = await self._receipt(record.tx_hash)
        except (LedgerError, asyncio.TimeoutError):
            if expired and await self.claim_store.mark_timeout(
                address, now, self.timeout_window
            ):
                logger.warning(
                    f"Claim {address.truncated()} timed out; receipt lookup failed"
                )
                return _TIMEOUT
            raise

        if receipt == ReceiptStatus.SUCCESS:
            await self.claim_store.finalize_success(address, record.transaction_ref, now)
            logger.info(
                f"Claim {address.truncated()} confirmed: {record.tx_hash}",
                extra={"tx_hash": record.tx_hash},
            )
            return _CONFIRMED

        if receipt == ReceiptStatus.REVERTED:
            if await self.claim_store.finalize_failure(address):
                logger.warning(f"Claim {address.truncated()} reverted: {record.tx_hash}")
                return _FAILED
            return _SKIPPED

        if expired and await self.claim_store.mark_timeout(
            address, now, self.timeout_window
        ):
            logger.warning(
                f"Claim {address.truncated()} timed out waiting for {record.tx_hash}"
            )
            return _TIMEOUT

        return _STILL_PENDING

    async def _expire_unsubmitted(
        self, record: ClaimRecord, now: datetime
    ) -> Optional[str]:
        if await self.claim_store.mark_timeout(record.address, now, self.timeout_window):
            logger.warning(
                f"Claim {record.address.truncated()} timed out without a transaction"
            )
            return _TIMEOUT
        return _SKIPPED

    async def _reconcile_timed_out(
        self, record: ClaimRecord, now: datetime
    ) -> Optional[str]:
        receipt = await self._receipt(record.tx_hash)
        if receipt != ReceiptStatus.SUCCESS:
            return None

        await self.claim_store.finalize_success(
            record.address, record.transaction_ref, now
        )
        logger.info(
            f"Claim {record.address.truncated()} confirmed after timeout: "
            f"{record.tx_hash}"
        )
        return _LATE_CONFIRMED

    # ================================================================
    # Helpers
    # ================================================================

    async def _receipt(self, tx_hash: str) -> ReceiptStatus:
        return await asyncio.wait_for(
            self.ledger.get_receipt(tx_hash), timeout=self.call_timeout
        )

    async def _process(
        self,
        records: Iterable[ClaimRecord],
        handler: RecordHandler,
        now: datetime,
        result: SweepResult,
        seen: Set[str],
        semaphore: asyncio.Semaphore,
    ) -> None:
        batch = []
        for record in records:
            if record.address.address in seen:
                continue
            seen.add(record.address.address)
            batch.append(record)

        outcomes = await asyncio.gather(
            *(self._guarded(record, handler, now, semaphore) for record in batch)
        )
        for outcome in outcomes:
            if outcome is not None:
                setattr(result, outcome, getattr(result, outcome) + 1)

    async def _guarded(
        self,
        record: ClaimRecord,
        handler: RecordHandler,
        now: datetime,
        semaphore: asyncio.Semaphore,
    ) -> Optional[str]:
        async with semaphore:
            try:
                with bind_wallet(record.address.address):
                    return await handler(record, now)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Receipt lookup for {record.address.truncated()} timed out "
                    f"after {self.call_timeout}s"
                )
                return _ERRORS
            except Exception as e:
                logger.error(
                    f"Reconciling {record.address.truncated()} failed: {e}",
                    exc_info=not isinstance(e, LedgerError),
                )
                return _ERRORS
