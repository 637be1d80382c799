"""
Claim API routes.

Public claim submission, registration and status lookup.
"""

from fastapi import APIRouter, Depends, Response, status

from monnayeur.application.services.claim_orchestrator import ClaimOrchestrator
from monnayeur.application.services.reconciliation_sweeper import (
    ReconciliationSweeper,
)
from monnayeur.di.dependencies import get_orchestrator, get_sweeper
from monnayeur.presentation.api.routes._status import status_code_for
from monnayeur.presentation.schemas.claim_schemas import (
    ClaimRequest,
    ClaimResponse,
    ClaimStatusResponse,
    RegisterRequest,
)

router = APIRouter(prefix="/claims", tags=["claims"])


# ================================================================
# Submit Claim
# ================================================================


@router.post(
    "",
    response_model=ClaimResponse,
    status_code=status.HTTP_200_OK,
    summary="Claim tokens for a wallet",
    responses={
        202: {"description": "Mint submitted, confirmation pending"},
        400: {"description": "Invalid wallet address"},
        409: {"description": "Claim in progress or awaiting retry"},
    },
)
async def submit_claim(
    request: ClaimRequest,
    response: Response,
    orchestrator: ClaimOrchestrator = Depends(get_orchestrator),
):
    """
    Claim tokens for a wallet.

    Safe to repeat: a confirmed wallet gets its original transaction
    back, a wallet with a claim in flight gets 409.

    Flow:
    1. Claim is registered as pending
    2. Mint is submitted to the token contract
    3. Confirmed within the response deadline: 200 with transaction
    4. Otherwise: 202, poll GET /api/claims/{wallet}
    """
    result = await orchestrator.submit_claim(request.wallet_address)
    response.status_code = status_code_for(result)
    return ClaimResponse.from_result(result)


# ================================================================
# Register Wallet
# ================================================================


@router.post(
    "/register",
    response_model=ClaimStatusResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a wallet for batch minting",
    responses={400: {"description": "Invalid wallet or referrer address"}},
)
async def register_wallet(
    request: RegisterRequest,
    orchestrator: ClaimOrchestrator = Depends(get_orchestrator),
):
    """
    Register a wallet to be minted by the next batch run.

    Repeating a registration returns the existing record. The first
    referrer given for a wallet is kept.
    """
    record = await orchestrator.register_wallet(
        request.wallet_address,
        referrer=request.referrer_address,
        referral_code=request.referral_code,
    )
    return ClaimStatusResponse.from_record(record, orchestrator.explorer_url)


# ================================================================
# Claim Status
# ================================================================


@router.get(
    "/{wallet}",
    response_model=ClaimStatusResponse,
    summary="Get claim status",
    description="Reconcile the claim against the chain and return it",
)
async def get_claim_status(
    wallet: str,
    sweeper: ReconciliationSweeper = Depends(get_sweeper),
    orchestrator: ClaimOrchestrator = Depends(get_orchestrator),
):
    record = await sweeper.reconcile_one(wallet)
    return ClaimStatusResponse.from_record(record, orchestrator.explorer_url)
