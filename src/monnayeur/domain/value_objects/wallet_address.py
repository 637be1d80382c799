"""
WalletAddress value object - Canonical EVM wallet address.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from web3 import Web3

from monnayeur.domain.exceptions.claim import InvalidAddressError

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


@dataclass(frozen=True)
class WalletAddress:
    """
    Value object representing a validated EVM wallet address.

    Business rules:
    - 0x prefix followed by 40 hex characters
    - Mixed-case input must carry a valid EIP-55 checksum
    - Stored lowercase, so equality is case-insensitive
    - Immutable once created
    """

    address: str

    def __post_init__(self):
        """Validate and case-fold address on creation."""
        raw = self.address.strip() if isinstance(self.address, str) else ""

        if not ADDRESS_PATTERN.match(raw):
            raise InvalidAddressError(str(self.address))

        is_mixed_case = raw[2:] != raw[2:].lower() and raw[2:] != raw[2:].upper()
        if is_mixed_case and not Web3.is_checksum_address(raw):
            raise InvalidAddressError(raw, "checksum mismatch")

        object.__setattr__(self, "address", raw.lower())

    @classmethod
    def parse(cls, raw: str) -> "WalletAddress":
        """Normalize a raw user-supplied address."""
        if isinstance(raw, WalletAddress):
            return raw
        return cls(address=raw)

    @property
    def checksummed(self) -> str:
        """EIP-55 checksummed form, used for contract calls."""
        return Web3.to_checksum_address(self.address)

    def truncated(self) -> str:
        """Return truncated address for display (e.g., '0xabcd...1234')."""
        return f"{self.address[:6]}...{self.address[-4:]}"

    def __str__(self) -> str:
        return self.address


def dedupe_addresses(
    addresses: Iterable[str],
) -> Tuple[List[WalletAddress], int]:
    """
    Normalize and deduplicate addresses, keeping first-seen order.

    Args:
        addresses: Raw or canonical addresses

    Returns:
        Tuple of (unique wallet addresses, number of duplicates dropped)

    Raises:
        InvalidAddressError: If any address is malformed
    """
    seen = set()
    unique: List[WalletAddress] = []
    duplicates = 0

    for raw in addresses:
        wallet = WalletAddress.parse(raw)
        if wallet in seen:
            duplicates += 1
            continue
        seen.add(wallet)
        unique.append(wallet)

    return unique, duplicates
