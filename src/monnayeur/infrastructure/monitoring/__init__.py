"""
Monitoring and observability infrastructure.
"""

from monnayeur.infrastructure.monitoring.logger import (
    bind_wallet,
    get_logger,
    get_request_id,
    set_request_id,
    setup_logging,
)

__all__ = [
    "bind_wallet",
    "get_logger",
    "get_request_id",
    "set_request_id",
    "setup_logging",
]
