"""
ClaimStore implementation using SQLAlchemy.

Each operation runs in its own short transaction. State transitions
are single conditional statements (INSERT ... ON CONFLICT DO NOTHING,
UPDATE ... WHERE status = ... RETURNING), so two concurrent callers can
never both win the same transition: the row lock taken by the first
UPDATE makes the second re-evaluate its WHERE clause and match nothing.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from monnayeur.domain.entities.claim_record import ClaimRecord, ClaimStatus
from monnayeur.domain.exceptions import (
    ClaimNotFoundError,
    InvalidClaimStateError,
)
from monnayeur.domain.repositories.i_claim_store import (
    BeginClaimOutcome,
    BeginClaimResult,
    IClaimStore,
)
from monnayeur.domain.services.clock import SystemClock
from monnayeur.domain.value_objects.transaction_ref import (
    RealTx,
    TransactionRef,
    parse_transaction_ref,
)
from monnayeur.domain.value_objects.wallet_address import WalletAddress
from monnayeur.infrastructure.monitoring.logger import get_logger
from monnayeur.infrastructure.persistence.database import Database
from monnayeur.infrastructure.persistence.models import ClaimModel

logger = get_logger(__name__)

_PENDING = ClaimStatus.PENDING.value
_RETRYABLE = (ClaimStatus.FAILED.value, ClaimStatus.TIMEOUT.value)


class ClaimStore(IClaimStore):
    """
    SQLAlchemy implementation of the claim store.

    Works against PostgreSQL (production) and SQLite (tests); the only
    dialect-specific piece is the upsert construct.
    """

    def __init__(self, database: Database):
        """
        Initialize store.

        Args:
            database: Connected Database providing sessions
        """
        self.database = database

    # ================================================================
    # Reads
    # ================================================================

    async def get(self, address: WalletAddress) -> Optional[ClaimRecord]:
        async with self.database.session() as session:
            model = await session.get(ClaimModel, address.address)
            return self._to_entity(model) if model else None

    async def list_pending_with_tx(self) -> List[ClaimRecord]:
        return await self._list(
            ClaimModel.status == _PENDING,
            ClaimModel.transaction_id.is_not(None),
        )

    async def list_stale_unsubmitted(self, older_than: datetime) -> List[ClaimRecord]:
        return await self._list(
            ClaimModel.status == _PENDING,
            ClaimModel.transaction_id.is_(None),
            ClaimModel.submitted_at < older_than,
        )

    async def list_timed_out_with_tx(self) -> List[ClaimRecord]:
        return await self._list(
            ClaimModel.status == ClaimStatus.TIMEOUT.value,
            ClaimModel.transaction_id.like("0x%"),
        )

    async def list_terminal_failed(self) -> List[ClaimRecord]:
        return await self._list(ClaimModel.status.in_(_RETRYABLE))

    async def list_unminted(self, stale_before: datetime) -> List[ClaimRecord]:
        return await self._list(self._claimable_clause(stale_before))

    async def count_by_status(self) -> Dict[ClaimStatus, int]:
        stmt = select(ClaimModel.status, func.count()).group_by(ClaimModel.status)
        async with self.database.session() as session:
            result = await session.execute(stmt)
            counts = {status: 0 for status in ClaimStatus}
            for status, count in result.all():
                counts[ClaimStatus(status)] = count
            return counts

    # ================================================================
    # Registration
    # ================================================================

    async def register(
        self, address: WalletAddress, mint_amount: Decimal
    ) -> ClaimRecord:
        now = SystemClock().now()
        stmt = (
            self._insert()
            .values(
                address=address.address,
                status=ClaimStatus.UNCLAIMED.value,
                mint_amount=mint_amount,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=[ClaimModel.address])
        )
        async with self.database.session() as session:
            await session.execute(stmt)
            model = await session.get(ClaimModel, address.address)
            return self._to_entity(model)

    async def set_referrer(
        self,
        address: WalletAddress,
        referrer_address: WalletAddress,
        referrer_code: Optional[str] = None,
    ) -> bool:
        if referrer_address == address:
            return False

        stmt = (
            update(ClaimModel)
            .execution_options(synchronize_session=False)
            .where(
                ClaimModel.address == address.address,
                ClaimModel.referrer_address.is_(None),
            )
            .values(
                referrer_address=referrer_address.address,
                referrer_code=referrer_code,
            )
            .returning(ClaimModel.address)
        )
        async with self.database.session() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    # ================================================================
    # Transitions
    # ================================================================

    async def begin_claim(
        self,
        address: WalletAddress,
        mint_amount: Decimal,
        now: datetime,
        stale_before: datetime,
    ) -> BeginClaimResult:
        insert_stmt = (
            self._insert()
            .values(
                address=address.address,
                status=_PENDING,
                mint_amount=mint_amount,
                submitted_at=now,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=[ClaimModel.address])
            .returning(ClaimModel.address)
        )
        acquire_stmt = (
            update(ClaimModel)
            .execution_options(synchronize_session=False)
            .where(
                ClaimModel.address == address.address,
                self._claimable_clause(stale_before),
            )
            .values(
                status=_PENDING,
                transaction_id=None,
                mint_amount=mint_amount,
                submitted_at=now,
                updated_at=now,
            )
            .returning(ClaimModel.address)
        )

        async with self.database.session() as session:
            inserted = (await session.execute(insert_stmt)).scalar_one_or_none()
            acquired = inserted is not None
            if not acquired:
                updated = await session.execute(acquire_stmt)
                acquired = updated.scalar_one_or_none() is not None

            model = await self._load(session, address)
            record = self._to_entity(model)

        if acquired:
            logger.info(f"Claim acquired for {address.truncated()}")
            return BeginClaimResult(BeginClaimOutcome.ACQUIRED, record)

        if record.status == ClaimStatus.CONFIRMED:
            outcome = BeginClaimOutcome.ALREADY_CONFIRMED
        elif record.status.is_retryable:
            outcome = BeginClaimOutcome.REQUIRES_RETRY
        else:
            outcome = BeginClaimOutcome.IN_FLIGHT

        logger.info(f"Claim for {address.truncated()} not acquired: {outcome.value}")
        return BeginClaimResult(outcome, record)

    async def attach_transaction(
        self, address: WalletAddress, transaction_ref: TransactionRef
    ) -> ClaimRecord:
        value = transaction_ref.to_storage()
        stmt = (
            update(ClaimModel)
            .execution_options(synchronize_session=False)
            .where(
                ClaimModel.address == address.address,
                ClaimModel.status == _PENDING,
                ClaimModel.transaction_id.is_(None),
            )
            .values(transaction_id=value)
            .returning(ClaimModel.address)
        )

        async with self.database.session() as session:
            updated = (await session.execute(stmt)).scalar_one_or_none()
            model = await self._load(session, address)
            record = self._to_entity(model)

        if updated is None and not (
            record.status == ClaimStatus.PENDING
            and record.transaction_ref == transaction_ref
        ):
            raise InvalidClaimStateError(
                address.address, record.status.value, "attach transaction to"
            )

        logger.info(f"Transaction {value} attached to {address.truncated()}")
        return record

    async def finalize_success(
        self,
        address: WalletAddress,
        transaction_ref: TransactionRef,
        now: datetime,
    ) -> ClaimRecord:
        value = transaction_ref.to_storage()
        allowed = or_(
            and_(
                ClaimModel.status == _PENDING,
                or_(
                    ClaimModel.transaction_id.is_(None),
                    ClaimModel.transaction_id == value,
                ),
            ),
            and_(
                ClaimModel.status == ClaimStatus.TIMEOUT.value,
                or_(
                    ClaimModel.transaction_id.is_(None),
                    ClaimModel.transaction_id == value,
                ),
            ),
        )
        if not isinstance(transaction_ref, RealTx):
            # Only a real transaction can rescue a timed-out claim
            allowed = and_(ClaimModel.status == _PENDING, allowed)

        stmt = (
            update(ClaimModel)
            .execution_options(synchronize_session=False)
            .where(ClaimModel.address == address.address, allowed)
            .values(
                status=ClaimStatus.CONFIRMED.value,
                transaction_id=value,
                confirmed_at=now,
                updated_at=now,
            )
            .returning(ClaimModel.address)
        )

        async with self.database.session() as session:
            updated = (await session.execute(stmt)).scalar_one_or_none()
            model = await self._load(session, address)
            record = self._to_entity(model)

        if updated is not None:
            logger.info(f"Claim confirmed for {address.truncated()} ({value})")
            return record

        if (
            record.status == ClaimStatus.CONFIRMED
            and record.transaction_ref == transaction_ref
        ):
            return record

        raise InvalidClaimStateError(address.address, record.status.value, "confirm")

    async def finalize_failure(self, address: WalletAddress) -> bool:
        stmt = (
            update(ClaimModel)
            .execution_options(synchronize_session=False)
            .where(
                ClaimModel.address == address.address,
                ClaimModel.status == _PENDING,
            )
            .values(status=ClaimStatus.FAILED.value)
            .returning(ClaimModel.address)
        )
        failed = await self._execute_transition(stmt)
        if failed:
            logger.warning(f"Claim failed for {address.truncated()}")
        return failed

    async def mark_timeout(
        self, address: WalletAddress, now: datetime, window: timedelta
    ) -> bool:
        stmt = (
            update(ClaimModel)
            .execution_options(synchronize_session=False)
            .where(
                ClaimModel.address == address.address,
                ClaimModel.status == _PENDING,
                ClaimModel.submitted_at < now - window,
            )
            .values(status=ClaimStatus.TIMEOUT.value, updated_at=now)
            .returning(ClaimModel.address)
        )
        timed_out = await self._execute_transition(stmt)
        if timed_out:
            logger.warning(f"Claim timed out for {address.truncated()}")
        return timed_out

    async def reset_for_retry(
        self, address: WalletAddress, now: datetime
    ) -> ClaimRecord:
        stmt = (
            update(ClaimModel)
            .execution_options(synchronize_session=False)
            .where(
                ClaimModel.address == address.address,
                ClaimModel.status.in_(_RETRYABLE),
            )
            .values(
                status=_PENDING,
                transaction_id=None,
                submitted_at=now,
                confirmed_at=None,
                updated_at=now,
            )
            .returning(ClaimModel.address)
        )

        async with self.database.session() as session:
            updated = (await session.execute(stmt)).scalar_one_or_none()
            model = await self._load(session, address)
            record = self._to_entity(model)

        if updated is None:
            raise InvalidClaimStateError(
                address.address, record.status.value, "retry"
            )

        logger.info(f"Claim reset for retry: {address.truncated()}")
        return record

    # ================================================================
    # Helpers
    # ================================================================

    def _insert(self):
        """Dialect-specific INSERT supporting ON CONFLICT DO NOTHING."""
        if self.database.dialect_name == "postgresql":
            return pg_insert(ClaimModel)
        return sqlite_insert(ClaimModel)

    @staticmethod
    def _claimable_clause(stale_before: datetime):
        """UNCLAIMED, or PENDING without transaction past its lease."""
        return or_(
            ClaimModel.status == ClaimStatus.UNCLAIMED.value,
            and_(
                ClaimModel.status == _PENDING,
                ClaimModel.transaction_id.is_(None),
                ClaimModel.submitted_at < stale_before,
            ),
        )

    async def _list(self, *criteria) -> List[ClaimRecord]:
        stmt = (
            select(ClaimModel)
            .where(*criteria)
            .order_by(ClaimModel.created_at, ClaimModel.address)
        )
        async with self.database.session() as session:
            result = await session.execute(stmt)
            return [self._to_entity(m) for m in result.scalars().all()]

    async def _execute_transition(self, stmt) -> bool:
        async with self.database.session() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    @staticmethod
    async def _load(session, address: WalletAddress) -> ClaimModel:
        stmt = (
            select(ClaimModel)
            .where(ClaimModel.address == address.address)
            .execution_options(populate_existing=True)
        )
        model = (await session.execute(stmt)).scalar_one_or_none()
        if model is None:
            raise ClaimNotFoundError(address.address)
        return model

    @staticmethod
    def _to_entity(model: ClaimModel) -> ClaimRecord:
        """Convert SQLAlchemy model to domain entity."""
        return ClaimRecord(
            address=WalletAddress(model.address),
            status=ClaimStatus(model.status),
            transaction_ref=parse_transaction_ref(model.transaction_id),
            mint_amount=Decimal(str(model.mint_amount)),
            submitted_at=model.submitted_at,
            confirmed_at=model.confirmed_at,
            referrer_address=(
                WalletAddress(model.referrer_address)
                if model.referrer_address
                else None
            ),
            referrer_code=model.referrer_code,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
