"""
Persistence layer for Monnayeur.
"""

from monnayeur.infrastructure.persistence.database import Database
from monnayeur.infrastructure.persistence.models import (
    Base,
    ClaimModel,
    ReferralBonusModel,
)

__all__ = [
    "Database",
    "Base",
    "ClaimModel",
    "ReferralBonusModel",
]
