"""
Domain service interfaces for Monnayeur.
"""

from monnayeur.domain.services.clock import IClock, SystemClock
from monnayeur.domain.services.i_ledger_gateway import (
    ILedgerGateway,
    ReceiptStatus,
)

__all__ = [
    "IClock",
    "SystemClock",
    "ILedgerGateway",
    "ReceiptStatus",
]
