"""
TransactionRef value objects - what a claim's transaction id refers to.

A claim resolves either through a real on-chain transaction or through
a marker meaning no mint was needed. The stored column keeps the
historical string markers so existing rows stay readable.
"""

import re
from dataclasses import dataclass
from typing import Optional, Union

from monnayeur.domain.exceptions.claim import InvalidTransactionHashError

TX_HASH_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")

ALREADY_FUNDED_MARKER = "ALREADY_HAD_TOKENS"
SYNCED_EXTERNALLY_MARKER = "SYNCED_FROM_CHAIN"

# Markers written by older deployments
_LEGACY_ALREADY_FUNDED = {"pre-existing", "skipped"}
_LEGACY_SYNCED = {"synced-from-chain"}


def is_transaction_hash(value: Optional[str]) -> bool:
    """Check if value is a 0x-prefixed 32-byte hex hash."""
    return bool(value) and bool(TX_HASH_PATTERN.match(value))


@dataclass(frozen=True)
class RealTx:
    """Reference to a transaction submitted on chain."""

    tx_hash: str

    def __post_init__(self):
        """Validate hash format."""
        if not is_transaction_hash(self.tx_hash):
            raise InvalidTransactionHashError(self.tx_hash)
        object.__setattr__(self, "tx_hash", self.tx_hash.lower())

    @property
    def is_on_chain(self) -> bool:
        return True

    def to_storage(self) -> str:
        return self.tx_hash

    def explorer_url(self, explorer_base: str) -> Optional[str]:
        """Block explorer link for this transaction."""
        return f"{explorer_base.rstrip('/')}/tx/{self.tx_hash}"


@dataclass(frozen=True)
class AlreadyFunded:
    """Wallet already held tokens, so no mint was submitted."""

    @property
    def is_on_chain(self) -> bool:
        return False

    def to_storage(self) -> str:
        return ALREADY_FUNDED_MARKER

    def explorer_url(self, explorer_base: str) -> Optional[str]:
        return None


@dataclass(frozen=True)
class SyncedExternally:
    """Balance discovered on chain during a startup sync."""

    @property
    def is_on_chain(self) -> bool:
        return False

    def to_storage(self) -> str:
        return SYNCED_EXTERNALLY_MARKER

    def explorer_url(self, explorer_base: str) -> Optional[str]:
        return None


TransactionRef = Union[RealTx, AlreadyFunded, SyncedExternally]


def parse_transaction_ref(value: Optional[str]) -> Optional[TransactionRef]:
    """
    Parse a stored transaction id column into a TransactionRef.

    Args:
        value: Column value (hash, marker, or None)

    Returns:
        TransactionRef, or None when no submission has been recorded

    Raises:
        InvalidTransactionHashError: If value is neither a hash nor a
            known marker
    """
    if value is None or value == "":
        return None

    if value == ALREADY_FUNDED_MARKER or value in _LEGACY_ALREADY_FUNDED:
        return AlreadyFunded()

    if value == SYNCED_EXTERNALLY_MARKER or value in _LEGACY_SYNCED:
        return SyncedExternally()

    return RealTx(tx_hash=value)
