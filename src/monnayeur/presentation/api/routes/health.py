"""
Health check API routes.
"""

from fastapi import APIRouter, Response, status

from monnayeur import __version__
from monnayeur.di.container import get_container

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(response: Response):
    """
    Health check endpoint.

    Returns 503 when the database is unreachable. An open ledger
    circuit only degrades the status: claims are still accepted and
    stay pending.
    """
    container = get_container()

    db_healthy = await container.database.health_check()
    breaker = container.circuit_breaker.get_stats()
    ledger_healthy = breaker["state"] == "closed"

    if not db_healthy:
        overall = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif not ledger_healthy:
        overall = "degraded"
    else:
        overall = "healthy"

    return {
        "status": overall,
        "version": __version__,
        "components": {
            "database": {"status": "healthy" if db_healthy else "unhealthy"},
            "ledger": {"status": "healthy" if ledger_healthy else "degraded", **breaker},
            "background": {
                "claims_in_flight": container.orchestrator.background_task_count,
                "jobs": [
                    {
                        "name": task.name,
                        "running": task.is_running,
                        "runs": task.runs,
                        "failures": task.failures,
                    }
                    for task in container.periodic_tasks
                ],
            },
        },
    }
