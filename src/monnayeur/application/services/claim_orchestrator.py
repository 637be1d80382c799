"""
Claim orchestrator - drives one wallet's claim through its lifecycle.

Flow: normalize → begin_claim → mint under a soft deadline → finalize.
The mint runs in a detached task. If it outlives the response deadline
the caller gets a pending result and the task finalizes the record on
its own when the chain call resolves.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal
from typing import Optional, Set, Union

from monnayeur.application.dto.claim_result import (
    ClaimOutcome,
    ClaimReason,
    ClaimResult,
)
from monnayeur.application.dto.job_results import RetryReport
from monnayeur.application.services.bonus_side_effector import BonusSideEffector
from monnayeur.domain.entities.claim_record import ClaimRecord
from monnayeur.domain.exceptions import (
    ChainUnavailableError,
    InvalidAddressError,
    InvalidClaimStateError,
    MonnayeurException,
    SubmissionPendingError,
    SubmissionRejectedError,
    ValidationError,
)
from monnayeur.domain.repositories.i_claim_store import (
    BeginClaimOutcome,
    IClaimStore,
)
from monnayeur.domain.services.clock import IClock, SystemClock
from monnayeur.domain.services.i_ledger_gateway import ILedgerGateway
from monnayeur.domain.value_objects.transaction_ref import RealTx
from monnayeur.domain.value_objects.wallet_address import WalletAddress
from monnayeur.infrastructure.monitoring.logger import bind_wallet, get_logger
from monnayeur.infrastructure.monitoring.metrics import (
    background_tasks_in_flight,
    claims_detached_total,
    claims_total,
)

logger = get_logger(__name__)

_BEGIN_REJECTIONS = {
    BeginClaimOutcome.IN_FLIGHT: ClaimReason.IN_FLIGHT,
    BeginClaimOutcome.REQUIRES_RETRY: ClaimReason.REQUIRES_RETRY,
}


class ClaimOrchestrator:
    """
    Per-request claim entry point.

    Business rules:
    - begin_claim serializes claims across processes; within this
      process a wallet whose mint is still running is never handed to
      another mint, whatever the age of its record
    - A confirmed wallet is answered from the store, never re-minted
    - The response deadline detaches the caller, it never cancels the
      chain call
    - SubmissionRejected fails the claim; ChainUnavailable leaves it
      pending for the batch scheduler; a broadcast but unconfirmed
      transaction is handed to the reconciliation sweeper
    """

    def __init__(
        self,
        claim_store: IClaimStore,
        ledger: ILedgerGateway,
        bonus_side_effector: Optional[BonusSideEffector] = None,
        clock: Optional[IClock] = None,
        default_mint_amount: Decimal = Decimal("2"),
        response_timeout: float = 60.0,
        claim_lease: timedelta = timedelta(minutes=10),
        explorer_url: str = "https://polygonscan.com",
    ):
        """
        Initialize orchestrator.

        Args:
            claim_store: Durable claim records
            ledger: Token contract gateway
            bonus_side_effector: Optional referral bonus trigger
            clock: Time source (default: system UTC clock)
            default_mint_amount: Tokens per claim when none requested
            response_timeout: Seconds a caller waits before getting pending
            claim_lease: Age after which a pending claim without a
                transaction is considered orphaned
            explorer_url: Block explorer base URL for result links
        """
        self.claim_store = claim_store
        self.ledger = ledger
        self.bonus_side_effector = bonus_side_effector
        self.clock = clock or SystemClock()
        self.default_mint_amount = Decimal(default_mint_amount)
        self.response_timeout = response_timeout
        self.claim_lease = claim_lease
        self.explorer_url = explorer_url

        self._background: Set[asyncio.Task] = set()
        self._in_flight: Set[str] = set()

    @property
    def background_task_count(self) -> int:
        return len(self._background)

    def is_in_flight(self, address: WalletAddress) -> bool:
        """Whether a mint for this wallet is still running in this process."""
        return address.address in self._in_flight

    # ================================================================
    # Entry points
    # ================================================================

    async def submit_claim(
        self,
        address: Union[str, WalletAddress],
        amount: Optional[Decimal] = None,
    ) -> ClaimResult:
        """
        Claim tokens for a wallet.

        Safe to call repeatedly for the same wallet.

        Args:
            address: Raw wallet address
            amount: Tokens to mint (default_mint_amount if None)

        Returns:
            ClaimResult: confirmed, pending, or rejected with a reason
        """
        # 1. Normalize
        try:
            wallet = WalletAddress.parse(address)
        except InvalidAddressError:
            logger.info(f"Claim rejected: invalid address {address!r}")
            return self._record(ClaimResult.rejected(None, ClaimReason.INVALID_ADDRESS))

        mint_amount = self._validate_amount(amount)

        if self.is_in_flight(wallet):
            return self._record(ClaimResult.rejected(wallet.address, ClaimReason.IN_FLIGHT))

        # 2. Take ownership of the wallet's claim
        now = self.clock.now()
        begin = await self.claim_store.begin_claim(
            wallet, mint_amount, now=now, stale_before=now - self.claim_lease
        )

        if begin.outcome == BeginClaimOutcome.ALREADY_CONFIRMED:
            logger.info(f"Claim for {wallet.truncated()} already confirmed")
            return self._record(
                ClaimResult.confirmed(
                    wallet.address,
                    begin.record.transaction_ref,
                    self.explorer_url,
                    idempotent=True,
                )
            )

        if not begin.acquired:
            return self._record(
                ClaimResult.rejected(wallet.address, _BEGIN_REJECTIONS[begin.outcome])
            )

        # 3-6. Mint under the soft deadline
        return self._record(
            await self._submit_within_deadline(wallet, mint_amount, award_bonus=True)
        )

    async def register_wallet(
        self,
        address: Union[str, WalletAddress],
        referrer: Optional[Union[str, WalletAddress]] = None,
        referral_code: Optional[str] = None,
    ) -> ClaimRecord:
        """
        Register a wallet for the next batch mint.

        Registration is idempotent and always uses the server mint
        amount. A referrer is recorded once; later ones and
        self-referrals are ignored.

        Raises:
            InvalidAddressError: If the wallet or referrer is malformed
        """
        wallet = WalletAddress.parse(address)
        referrer_wallet = WalletAddress.parse(referrer) if referrer is not None else None

        record = await self.claim_store.register(wallet, self.default_mint_amount)

        if referrer_wallet is not None:
            if await self.claim_store.set_referrer(wallet, referrer_wallet, referral_code):
                logger.info(
                    f"Referrer {referrer_wallet.truncated()} recorded for {wallet.truncated()}"
                )
                record = await self.claim_store.get(wallet)
            else:
                logger.debug(f"Referrer for {wallet.truncated()} not recorded")

        return record

    async def retry_claim(self, address: Union[str, WalletAddress]) -> ClaimResult:
        """
        Reset a failed or timed-out claim and submit it again.

        Raises:
            InvalidAddressError: If address is malformed
            ClaimNotFoundError: If the wallet has no claim
            InvalidClaimStateError: If the claim is not FAILED or TIMEOUT,
                or its previous mint is still running
        """
        wallet = WalletAddress.parse(address)
        if self.is_in_flight(wallet):
            raise InvalidClaimStateError(wallet.address, "in-flight", "retry")

        record = await self.claim_store.reset_for_retry(wallet, self.clock.now())
        logger.info(f"Retrying claim for {wallet.truncated()}")

        amount = record.mint_amount if record.mint_amount > 0 else self.default_mint_amount
        return self._record(
            await self._submit_within_deadline(wallet, amount, award_bonus=True)
        )

    async def retry_failed(self) -> RetryReport:
        """Retry every FAILED and TIMEOUT claim, isolating failures."""
        report = RetryReport()
        for record in await self.claim_store.list_terminal_failed():
            report.attempted += 1
            try:
                result = await self.retry_claim(record.address)
            except MonnayeurException as e:
                logger.warning(f"Retry of {record.address.truncated()} skipped: {e}")
                report.errors += 1
                continue

            if result.status == ClaimOutcome.CONFIRMED:
                report.confirmed += 1
            elif result.status == ClaimOutcome.PENDING:
                report.pending += 1
            else:
                report.rejected += 1

        logger.info(f"Bulk retry finished: {report.to_dict()}")
        return report

    async def mint_and_finalize(
        self,
        address: WalletAddress,
        amount: Decimal,
        award_bonus: bool = True,
    ) -> ClaimResult:
        """
        Submit the mint for an acquired claim and record the outcome.

        The claim must already be PENDING and owned by the caller.

        Args:
            address: Wallet being minted to
            amount: Token amount
            award_bonus: Trigger the referral bonus on confirmation

        Returns:
            ClaimResult reflecting the stored outcome
        """
        self._in_flight.add(address.address)
        try:
            with bind_wallet(address.address):
                return await self._mint_and_record(address, amount, award_bonus)
        finally:
            self._in_flight.discard(address.address)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for detached mint and bonus tasks to finish."""
        if not self._background:
            return
        logger.info(f"Draining {len(self._background)} background claim tasks")
        await asyncio.wait(set(self._background), timeout=timeout)

    # ================================================================
    # Internals
    # ================================================================

    async def _mint_and_record(
        self, address: WalletAddress, amount: Decimal, award_bonus: bool
    ) -> ClaimResult:
        try:
            tx_hash = await self.ledger.mint(address, amount)
        except SubmissionPendingError as e:
            tx_ref = RealTx(e.tx_hash)
            await self.claim_store.attach_transaction(address, tx_ref)
            logger.info(f"Mint for {address.truncated()} awaiting confirmation")
            return ClaimResult.pending(
                address.address,
                ClaimReason.AWAITING_CONFIRMATION,
                tx_ref,
                self.explorer_url,
            )
        except SubmissionRejectedError as e:
            await self.claim_store.finalize_failure(address)
            logger.error(f"Mint for {address.truncated()} rejected: {e.message}")
            return ClaimResult.rejected(address.address, ClaimReason.SUBMISSION_REJECTED)
        except ChainUnavailableError as e:
            logger.warning(
                f"Mint for {address.truncated()} deferred, chain unavailable: {e.message}"
            )
            return ClaimResult.pending(address.address, ClaimReason.CHAIN_UNAVAILABLE)

        tx_ref = RealTx(tx_hash)
        try:
            record = await self.claim_store.finalize_success(
                address, tx_ref, self.clock.now()
            )
        except InvalidClaimStateError as e:
            # Tokens are on chain even though the record moved meanwhile
            logger.error(
                f"Mint {tx_hash} for {address.truncated()} succeeded but claim is "
                f"{e.current_status}; needs operator review"
            )
            return ClaimResult.confirmed(address.address, tx_ref, self.explorer_url)

        if award_bonus and self.bonus_side_effector is not None:
            self._spawn(self._award_bonus(record), name=f"bonus:{address.address}")

        return ClaimResult.confirmed(address.address, tx_ref, self.explorer_url)

    async def _submit_within_deadline(
        self, address: WalletAddress, amount: Decimal, award_bonus: bool
    ) -> ClaimResult:
        # Marked before the task first runs; released once it is done
        self._in_flight.add(address.address)
        task = self._spawn(
            self.mint_and_finalize(address, amount, award_bonus=award_bonus),
            name=f"mint:{address.address}",
        )
        task.add_done_callback(lambda _: self._in_flight.discard(address.address))
        try:
            return await asyncio.wait_for(
                asyncio.shield(task), timeout=self.response_timeout
            )
        except asyncio.TimeoutError:
            claims_detached_total.inc()
            logger.warning(
                f"Mint for {address.truncated()} still running after "
                f"{self.response_timeout}s; continuing in background"
            )
            return ClaimResult.pending(address.address, ClaimReason.PROCESSING)

    async def _award_bonus(self, record: ClaimRecord) -> None:
        await self.bonus_side_effector.award(record)

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        background_tasks_in_flight.inc()
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        background_tasks_in_flight.dec()
        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Background task {task.get_name()} failed: {exc}", exc_info=exc
            )

    def _validate_amount(self, amount: Optional[Decimal]) -> Decimal:
        if amount is None:
            return self.default_mint_amount
        amount = Decimal(amount)
        if amount <= 0:
            raise ValidationError("amount", "must be positive")
        return amount

    @staticmethod
    def _record(result: ClaimResult) -> ClaimResult:
        claims_total.labels(
            status=result.status.value,
            reason=result.reason.value if result.reason else "none",
        ).inc()
        return result
