"""
Domain entities for Monnayeur.
"""

from monnayeur.domain.entities.claim_record import ClaimRecord, ClaimStatus
from monnayeur.domain.entities.referral_bonus import ReferralBonus

__all__ = [
    "ClaimRecord",
    "ClaimStatus",
    "ReferralBonus",
]
