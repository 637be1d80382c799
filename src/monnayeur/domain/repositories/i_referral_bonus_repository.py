"""
Referral bonus repository interface.
"""

from abc import ABC, abstractmethod
from typing import List

from monnayeur.domain.entities.referral_bonus import ReferralBonus
from monnayeur.domain.value_objects.wallet_address import WalletAddress


class IReferralBonusRepository(ABC):
    """Interface for referral bonus audit rows."""

    @abstractmethod
    async def create(self, bonus: ReferralBonus) -> ReferralBonus:
        """
        Record a bonus mint.

        Args:
            bonus: ReferralBonus entity to persist

        Returns:
            Persisted entity
        """

    @abstractmethod
    async def list_by_referrer(
        self, referrer_address: WalletAddress
    ) -> List[ReferralBonus]:
        """List bonuses paid to a referrer, newest first."""
