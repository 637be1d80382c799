"""
Repository implementations for Monnayeur persistence.
"""

from monnayeur.infrastructure.persistence.repositories.claim_store import (
    ClaimStore,
)
from monnayeur.infrastructure.persistence.repositories.referral_bonus_repository import (  # noqa: E501
    ReferralBonusRepository,
)

__all__ = [
    "ClaimStore",
    "ReferralBonusRepository",
]
