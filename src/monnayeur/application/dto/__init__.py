"""
Data transfer objects for the application layer.
"""

from monnayeur.application.dto.claim_result import (
    ClaimOutcome,
    ClaimReason,
    ClaimResult,
)
from monnayeur.application.dto.job_results import (
    BatchJob,
    BatchRunResult,
    RetryReport,
    SweepResult,
)

__all__ = [
    "ClaimOutcome",
    "ClaimReason",
    "ClaimResult",
    "BatchJob",
    "BatchRunResult",
    "RetryReport",
    "SweepResult",
]
