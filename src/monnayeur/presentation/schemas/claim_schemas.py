"""
API schemas for claim operations.

Request and response models for claim and admin endpoints.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from monnayeur.application.dto.claim_result import ClaimResult
from monnayeur.application.dto.job_results import (
    BatchRunResult,
    RetryReport,
    SweepResult,
)
from monnayeur.domain.entities.claim_record import ClaimRecord

# ================================================================
# Request Schemas
# ================================================================


class ClaimRequest(BaseModel):
    """
    Request schema for claiming tokens.

    The minted quantity is fixed by the server (MINT_AMOUNT).
    """

    wallet_address: str = Field(
        ...,
        description="EVM wallet address (0x + 40 hex characters)",
        max_length=64,
    )


class RegisterRequest(BaseModel):
    """Request schema for registering a wallet for batch minting."""

    wallet_address: str = Field(..., max_length=64)
    referrer_address: Optional[str] = Field(
        default=None,
        description="Wallet that referred this one",
        max_length=64,
    )
    referral_code: Optional[str] = Field(default=None, max_length=64)


# ================================================================
# Response Schemas
# ================================================================


class ClaimResponse(BaseModel):
    """Response schema for claim and retry requests."""

    status: str = Field(..., description="confirmed, pending or rejected")
    address: Optional[str] = None
    transaction_id: Optional[str] = None
    explorer_url: Optional[str] = None
    reason: Optional[str] = None
    message: str
    idempotent: bool = False

    @classmethod
    def from_result(cls, result: ClaimResult) -> "ClaimResponse":
        return cls(**result.to_dict())


class ClaimStatusResponse(BaseModel):
    """Response schema for a stored claim record."""

    address: str
    status: str
    transaction_id: Optional[str] = None
    explorer_url: Optional[str] = None
    mint_amount: Decimal
    submitted_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    referrer_address: Optional[str] = None

    @classmethod
    def from_record(
        cls, record: ClaimRecord, explorer_base: str
    ) -> "ClaimStatusResponse":
        explorer_url = None
        if record.transaction_ref is not None:
            explorer_url = record.transaction_ref.explorer_url(explorer_base)

        return cls(
            address=record.address.address,
            status=record.status.value,
            transaction_id=(
                record.transaction_ref.to_storage() if record.transaction_ref else None
            ),
            explorer_url=explorer_url,
            mint_amount=record.mint_amount,
            submitted_at=record.submitted_at,
            confirmed_at=record.confirmed_at,
            referrer_address=(
                record.referrer_address.address if record.referrer_address else None
            ),
        )


class SweepResponse(BaseModel):
    """Response schema for a reconciliation sweep."""

    confirmed: int
    failed: int
    timeout: int
    still_pending: int
    skipped: int
    late_confirmed: int
    errors: int
    total: int

    @classmethod
    def from_result(cls, result: SweepResult) -> "SweepResponse":
        return cls(**result.to_dict())


class BatchRunResponse(BaseModel):
    """Response schema for a batch mint run."""

    candidates: int
    duplicates_dropped: int
    batches: int
    acquired: int
    skipped: int
    minted: int
    already_funded: int
    fallback_minted: int
    fallback_failed: int
    awaiting_confirmation: int
    transaction_ids: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: BatchRunResult) -> "BatchRunResponse":
        return cls(**result.to_dict())


class RetryReportResponse(BaseModel):
    """Response schema for bulk retry of failed claims."""

    attempted: int
    confirmed: int
    pending: int
    rejected: int
    errors: int

    @classmethod
    def from_report(cls, report: RetryReport) -> "RetryReportResponse":
        return cls(**report.to_dict())


class StatsResponse(BaseModel):
    """Response schema for claim counts by status."""

    counts: Dict[str, int]
    total: int
