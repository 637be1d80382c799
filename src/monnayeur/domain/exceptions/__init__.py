"""
Domain exceptions package.
"""

# Base exceptions
from monnayeur.domain.exceptions.base import (
    EntityNotFoundError,
    MonnayeurException,
    ValidationError,
)

# Claim exceptions
from monnayeur.domain.exceptions.claim import (
    ClaimNotFoundError,
    InvalidAddressError,
    InvalidClaimStateError,
    InvalidTransactionHashError,
)

# Ledger exceptions
from monnayeur.domain.exceptions.ledger import (
    ChainUnavailableError,
    LedgerError,
    SubmissionPendingError,
    SubmissionRejectedError,
)

__all__ = [
    # Base
    "MonnayeurException",
    "EntityNotFoundError",
    "ValidationError",
    # Claim
    "ClaimNotFoundError",
    "InvalidAddressError",
    "InvalidClaimStateError",
    "InvalidTransactionHashError",
    # Ledger
    "LedgerError",
    "ChainUnavailableError",
    "SubmissionRejectedError",
    "SubmissionPendingError",
]
