"""
SQLAlchemy models for Monnayeur persistence.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DECIMAL, CheckConstraint, DateTime, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""


class ClaimModel(Base):
    """Claim record database model - one row per wallet."""

    __tablename__ = "claims"
    __table_args__ = (
        CheckConstraint("address = lower(address)", name="ck_claims_address_lower"),
        CheckConstraint(
            "status IN ('unclaimed', 'pending', 'confirmed', 'failed', 'timeout')",
            name="ck_claims_status",
        ),
    )

    address: Mapped[str] = mapped_column(String(42), primary_key=True)
    status: Mapped[str] = mapped_column(
        String(20), index=True, nullable=False, default="unclaimed"
    )
    transaction_id: Mapped[str | None] = mapped_column(String(66), index=True)
    mint_amount: Mapped[Decimal] = mapped_column(
        DECIMAL(36, 18), nullable=False, default=Decimal("0")
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime)
    referrer_address: Mapped[str | None] = mapped_column(String(42))
    referrer_code: Mapped[str | None] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )


class ReferralBonusModel(Base):
    """Referral bonus audit model."""

    __tablename__ = "referral_bonuses"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    referral_code: Mapped[str | None] = mapped_column(String(32), index=True)
    referrer_address: Mapped[str] = mapped_column(
        String(42), index=True, nullable=False
    )
    referred_address: Mapped[str] = mapped_column(String(42), nullable=False)
    bonus_amount: Mapped[Decimal] = mapped_column(DECIMAL(36, 18), nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
