"""
ReferralBonus entity - audit row for a tracked referral bonus mint.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from monnayeur.domain.value_objects.wallet_address import WalletAddress


@dataclass
class ReferralBonus:
    """
    Referral bonus paid to a referrer after a confirmed claim.

    Silent bonuses to the fallback beneficiary are never recorded.
    """

    referrer_address: WalletAddress
    referred_address: WalletAddress
    bonus_amount: Decimal
    tx_hash: str
    referral_code: Optional[str] = field(default=None)
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.bonus_amount <= 0:
            raise ValueError("Bonus amount must be positive")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "referral_code": self.referral_code,
            "referrer_address": str(self.referrer_address),
            "referred_address": str(self.referred_address),
            "bonus_amount": str(self.bonus_amount),
            "tx_hash": self.tx_hash,
            "created_at": self.created_at.isoformat(),
        }
