"""
Ledger exceptions.

Raised by ledger gateway implementations. The claim pipeline decides
per exception kind whether a record fails, stays pending, or is tracked
by transaction hash.
"""

from monnayeur.domain.exceptions.base import MonnayeurException


class LedgerError(MonnayeurException):
    """Base exception for ledger operations."""


class ChainUnavailableError(LedgerError):
    """Raised on RPC transport failure. Retryable."""

    def __init__(self, message: str, operation: str = None):
        """
        Initialize chain unavailable error.

        Args:
            message: Error message
            operation: Gateway operation that failed
        """
        super().__init__(message, "CHAIN_UNAVAILABLE")
        self.operation = operation


class SubmissionRejectedError(LedgerError):
    """Raised when the chain refuses a submission (revert, nonce, gas)."""

    def __init__(self, message: str, tx_hash: str = None):
        super().__init__(message, "SUBMISSION_REJECTED")
        self.tx_hash = tx_hash


class SubmissionPendingError(LedgerError):
    """Raised when a transaction was broadcast but is not yet included."""

    def __init__(self, tx_hash: str):
        """
        Initialize submission pending error.

        Args:
            tx_hash: Hash of the broadcast transaction
        """
        super().__init__(
            f"Transaction {tx_hash} broadcast but not yet included",
            "SUBMISSION_PENDING",
        )
        self.tx_hash = tx_hash
