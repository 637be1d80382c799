"""
Application services.
"""

from monnayeur.application.services.batch_mint_scheduler import BatchMintScheduler
from monnayeur.application.services.bonus_side_effector import (
    BonusOutcome,
    BonusPolicy,
    BonusSideEffector,
    BonusType,
)
from monnayeur.application.services.claim_orchestrator import ClaimOrchestrator
from monnayeur.application.services.reconciliation_sweeper import (
    ReconciliationSweeper,
)

__all__ = [
    "BatchMintScheduler",
    "BonusOutcome",
    "BonusPolicy",
    "BonusSideEffector",
    "BonusType",
    "ClaimOrchestrator",
    "ReconciliationSweeper",
]
