"""
FastAPI dependency injection.

Provides dependencies for FastAPI routes using the DI container.
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from monnayeur.application.services.batch_mint_scheduler import BatchMintScheduler
from monnayeur.application.services.claim_orchestrator import ClaimOrchestrator
from monnayeur.application.services.reconciliation_sweeper import (
    ReconciliationSweeper,
)
from monnayeur.di.container import get_container
from monnayeur.domain.repositories.i_claim_store import IClaimStore

# ================================================================
# Service Dependencies
# ================================================================


def get_orchestrator() -> ClaimOrchestrator:
    """Get ClaimOrchestrator dependency."""
    return get_container().orchestrator


def get_sweeper() -> ReconciliationSweeper:
    """Get ReconciliationSweeper dependency."""
    return get_container().sweeper


def get_batch_scheduler() -> BatchMintScheduler:
    """Get BatchMintScheduler dependency."""
    return get_container().batch_scheduler


def get_claim_store() -> IClaimStore:
    """Get ClaimStore dependency."""
    return get_container().claim_store


# ================================================================
# Admin Authentication
# ================================================================


async def require_admin_key(
    x_admin_key: Optional[str] = Header(default=None, alias="X-Admin-Key"),
) -> None:
    """
    Check the shared admin key header.

    Raises:
        HTTPException: 503 if no key is configured, 401 if it does not match
    """
    expected = get_container().settings.ADMIN_API_KEY
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API is not configured",
        )

    if x_admin_key is None or not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )
