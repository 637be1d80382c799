"""
Admin API routes.

Operator triggers for retries, reconciliation and batch minting.
All routes require the X-Admin-Key header.
"""

from fastapi import APIRouter, Depends, Response

from monnayeur.application.services.batch_mint_scheduler import BatchMintScheduler
from monnayeur.application.services.claim_orchestrator import ClaimOrchestrator
from monnayeur.application.services.reconciliation_sweeper import (
    ReconciliationSweeper,
)
from monnayeur.di.dependencies import (
    get_batch_scheduler,
    get_claim_store,
    get_orchestrator,
    get_sweeper,
    require_admin_key,
)
from monnayeur.domain.repositories.i_claim_store import IClaimStore
from monnayeur.presentation.api.routes._status import status_code_for
from monnayeur.presentation.schemas.claim_schemas import (
    BatchRunResponse,
    ClaimResponse,
    RetryReportResponse,
    StatsResponse,
    SweepResponse,
)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_key)],
)


# ================================================================
# Retries
# ================================================================


@router.post(
    "/claims/retry-failed",
    response_model=RetryReportResponse,
    summary="Retry every failed and timed-out claim",
)
async def retry_failed_claims(
    orchestrator: ClaimOrchestrator = Depends(get_orchestrator),
):
    report = await orchestrator.retry_failed()
    return RetryReportResponse.from_report(report)


@router.post(
    "/claims/{wallet}/retry",
    response_model=ClaimResponse,
    summary="Retry a failed or timed-out claim",
    responses={
        404: {"description": "No claim for this wallet"},
        409: {"description": "Claim is not failed or timed out"},
    },
)
async def retry_claim(
    wallet: str,
    response: Response,
    orchestrator: ClaimOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.retry_claim(wallet)
    response.status_code = status_code_for(result)
    return ClaimResponse.from_result(result)


# ================================================================
# Background Jobs
# ================================================================


@router.post(
    "/sweep",
    response_model=SweepResponse,
    summary="Run a reconciliation sweep now",
)
async def sweep_now(sweeper: ReconciliationSweeper = Depends(get_sweeper)):
    result = await sweeper.sweep()
    return SweepResponse.from_result(result)


@router.post(
    "/batch",
    response_model=BatchRunResponse,
    summary="Run the batch mint scheduler now",
)
async def run_batch_now(
    scheduler: BatchMintScheduler = Depends(get_batch_scheduler),
):
    result = await scheduler.run_batch()
    return BatchRunResponse.from_result(result)


# ================================================================
# Stats
# ================================================================


@router.get("/stats", response_model=StatsResponse, summary="Claim counts")
async def claim_stats(claim_store: IClaimStore = Depends(get_claim_store)):
    counts = await claim_store.count_by_status()
    by_name = {claim_status.value: count for claim_status, count in counts.items()}
    return StatsResponse(counts=by_name, total=sum(by_name.values()))
