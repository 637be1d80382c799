"""
API middleware.
"""

from monnayeur.presentation.api.middleware.error_handler import (
    monnayeur_exception_handler,
)
from monnayeur.presentation.api.middleware.metrics_middleware import (
    MetricsMiddleware,
)
from monnayeur.presentation.api.middleware.request_id_middleware import (
    RequestIDMiddleware,
)

__all__ = [
    "MetricsMiddleware",
    "RequestIDMiddleware",
    "monnayeur_exception_handler",
]
