"""
Ledger gateway interface.

Single-attempt access to the token contract. Implementations never
retry; the claim pipeline owns all retry and timeout policy.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import Sequence

from monnayeur.domain.value_objects.wallet_address import WalletAddress


class ReceiptStatus(str, Enum):
    """On-chain state of a submitted transaction."""

    PENDING = "pending"
    SUCCESS = "success"
    REVERTED = "reverted"


class ILedgerGateway(ABC):
    """Interface for token contract operations."""

    @abstractmethod
    async def balance_of(self, address: WalletAddress) -> Decimal:
        """
        Get token balance of a wallet.

        Raises:
            ChainUnavailableError: On RPC failure. Callers must not
                read this as a zero balance unless they tolerate it.
        """

    @abstractmethod
    async def mint(self, address: WalletAddress, amount: Decimal) -> str:
        """
        Mint tokens to a single wallet.

        Args:
            address: Recipient
            amount: Token amount (whole tokens, not base units)

        Returns:
            Transaction hash of the included transaction

        Raises:
            SubmissionRejectedError: Revert, nonce or gas rejection
            ChainUnavailableError: RPC transport failure
            SubmissionPendingError: Broadcast, not yet included
        """

    @abstractmethod
    async def batch_mint(
        self,
        addresses: Sequence[WalletAddress],
        amounts: Sequence[Decimal],
    ) -> str:
        """
        Mint to many wallets in one all-or-nothing transaction.

        Same return value and errors as mint().
        """

    @abstractmethod
    async def get_receipt(self, tx_hash: str) -> ReceiptStatus:
        """
        Poll a transaction receipt without waiting.

        Raises:
            ChainUnavailableError: On RPC failure
        """

    async def close(self) -> None:
        """Release network resources."""
