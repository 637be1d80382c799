"""
Repository interfaces for Monnayeur domain.
"""

from monnayeur.domain.repositories.i_claim_store import (
    BeginClaimOutcome,
    BeginClaimResult,
    IClaimStore,
)
from monnayeur.domain.repositories.i_referral_bonus_repository import (
    IReferralBonusRepository,
)

__all__ = [
    "BeginClaimOutcome",
    "BeginClaimResult",
    "IClaimStore",
    "IReferralBonusRepository",
]
