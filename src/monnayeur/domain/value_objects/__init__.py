"""
Value objects for Monnayeur domain.
"""

from monnayeur.domain.value_objects.transaction_ref import (
    AlreadyFunded,
    RealTx,
    SyncedExternally,
    TransactionRef,
    is_transaction_hash,
    parse_transaction_ref,
)
from monnayeur.domain.value_objects.wallet_address import (
    WalletAddress,
    dedupe_addresses,
)

__all__ = [
    "WalletAddress",
    "dedupe_addresses",
    "TransactionRef",
    "RealTx",
    "AlreadyFunded",
    "SyncedExternally",
    "is_transaction_hash",
    "parse_transaction_ref",
]
