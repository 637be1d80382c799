"""
HTTP status codes for claim results.
"""

from fastapi import status

from monnayeur.application.dto.claim_result import (
    ClaimOutcome,
    ClaimReason,
    ClaimResult,
)

_REJECTION_STATUS = {
    ClaimReason.INVALID_ADDRESS: status.HTTP_400_BAD_REQUEST,
    ClaimReason.IN_FLIGHT: status.HTTP_409_CONFLICT,
    ClaimReason.REQUIRES_RETRY: status.HTTP_409_CONFLICT,
    ClaimReason.SUBMISSION_REJECTED: status.HTTP_502_BAD_GATEWAY,
}


def status_code_for(result: ClaimResult) -> int:
    """Map a claim result to its response status code."""
    if result.status == ClaimOutcome.CONFIRMED:
        return status.HTTP_200_OK
    if result.status == ClaimOutcome.PENDING:
        return status.HTTP_202_ACCEPTED
    return _REJECTION_STATUS.get(result.reason, status.HTTP_400_BAD_REQUEST)
