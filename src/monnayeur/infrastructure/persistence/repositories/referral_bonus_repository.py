"""
ReferralBonus repository implementation using SQLAlchemy.
"""

from decimal import Decimal
from typing import List

from sqlalchemy import select

from monnayeur.domain.entities.referral_bonus import ReferralBonus
from monnayeur.domain.repositories.i_referral_bonus_repository import (
    IReferralBonusRepository,
)
from monnayeur.domain.value_objects.wallet_address import WalletAddress
from monnayeur.infrastructure.persistence.database import Database
from monnayeur.infrastructure.persistence.models import ReferralBonusModel


class ReferralBonusRepository(IReferralBonusRepository):
    """SQLAlchemy implementation of referral bonus repository."""

    def __init__(self, database: Database):
        self.database = database

    async def create(self, bonus: ReferralBonus) -> ReferralBonus:
        model = ReferralBonusModel(
            id=bonus.id,
            referral_code=bonus.referral_code,
            referrer_address=bonus.referrer_address.address,
            referred_address=bonus.referred_address.address,
            bonus_amount=bonus.bonus_amount,
            tx_hash=bonus.tx_hash,
            created_at=bonus.created_at,
        )

        async with self.database.session() as session:
            session.add(model)
            await session.flush()
            return self._to_entity(model)

    async def list_by_referrer(
        self, referrer_address: WalletAddress
    ) -> List[ReferralBonus]:
        stmt = (
            select(ReferralBonusModel)
            .where(ReferralBonusModel.referrer_address == referrer_address.address)
            .order_by(ReferralBonusModel.created_at.desc())
        )
        async with self.database.session() as session:
            result = await session.execute(stmt)
            return [self._to_entity(m) for m in result.scalars().all()]

    @staticmethod
    def _to_entity(model: ReferralBonusModel) -> ReferralBonus:
        """Convert SQLAlchemy model to domain entity."""
        return ReferralBonus(
            id=model.id,
            referral_code=model.referral_code,
            referrer_address=WalletAddress(model.referrer_address),
            referred_address=WalletAddress(model.referred_address),
            bonus_amount=Decimal(str(model.bonus_amount)),
            tx_hash=model.tx_hash,
            created_at=model.created_at,
        )
