"""
Claim lifecycle exceptions.
"""

from monnayeur.domain.exceptions.base import (
    EntityNotFoundError,
    MonnayeurException,
    ValidationError,
)


class InvalidAddressError(ValidationError):
    """Raised when a wallet address is malformed."""

    def __init__(self, address: str, reason: str = "not a valid EVM address"):
        super().__init__("address", reason)
        self.code = "INVALID_ADDRESS"
        self.address = address


class InvalidTransactionHashError(ValidationError):
    """Raised when a string is not a well-formed transaction hash."""

    def __init__(self, value: str):
        super().__init__("transaction_hash", f"malformed hash {value!r}")
        self.code = "INVALID_TRANSACTION_HASH"
        self.value = value


class ClaimNotFoundError(EntityNotFoundError):
    """Raised when no claim record exists for an address."""

    def __init__(self, address: str):
        super().__init__("ClaimRecord", address)
        self.address = address


class InvalidClaimStateError(MonnayeurException):
    """Raised when a transition is not allowed from the current status."""

    def __init__(self, address: str, current_status: str, operation: str):
        """
        Initialize invalid state error.

        Args:
            address: Wallet address of the claim
            current_status: Status the record was found in
            operation: Store operation that was refused
        """
        super().__init__(
            f"Cannot {operation} claim {address} in {current_status} status",
            "INVALID_STATE",
        )
        self.address = address
        self.current_status = current_status
        self.operation = operation
