"""
Shared test helpers.
"""

from tests.helpers.clock import FixedClock
from tests.helpers.fake_ledger import FakeLedger, make_address, make_tx_hash
from tests.helpers.in_memory_claim_store import InMemoryClaimStore
from tests.helpers.laborant_test import LaborantTest

__all__ = [
    "FixedClock",
    "FakeLedger",
    "InMemoryClaimStore",
    "LaborantTest",
    "make_address",
    "make_tx_hash",
]
