"""
Blockchain infrastructure for Monnayeur.
"""

from monnayeur.infrastructure.blockchain.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerError,
    CircuitState,
)
from monnayeur.infrastructure.blockchain.web3_ledger_gateway import (
    Web3LedgerGateway,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerError",
    "CircuitState",
    "Web3LedgerGateway",
]
