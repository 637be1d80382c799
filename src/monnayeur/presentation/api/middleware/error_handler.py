"""
Global error handling middleware.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse

from monnayeur.domain.exceptions import LedgerError, MonnayeurException
from monnayeur.infrastructure.monitoring.logger import get_logger

logger = get_logger(__name__)

STATUS_CODE_MAP = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "INVALID_ADDRESS": status.HTTP_400_BAD_REQUEST,
    "INVALID_TRANSACTION_HASH": status.HTTP_400_BAD_REQUEST,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "CHAIN_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
    "SUBMISSION_REJECTED": status.HTTP_502_BAD_GATEWAY,
    "SUBMISSION_PENDING": status.HTTP_202_ACCEPTED,
}


async def monnayeur_exception_handler(
    request: Request, exc: MonnayeurException
) -> JSONResponse:
    """
    Handle Monnayeur domain exceptions.

    Converts domain exceptions to HTTP responses. Ledger messages may
    carry raw node output, so they are replaced with a generic text.
    """
    status_code = STATUS_CODE_MAP.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    message = exc.message
    if isinstance(exc, LedgerError):
        logger.warning(f"Ledger error on {request.url.path}: {exc.message}")
        message = "Blockchain request could not be completed"

    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.code,
            "message": message,
        },
    )
