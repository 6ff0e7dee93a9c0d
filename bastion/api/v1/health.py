"""Health check endpoint with optional database connectivity check."""

from fastapi import APIRouter

from bastion.api.v1.deps import DbSession
from bastion.core.config import settings
from bastion.core.database import check_db_connected
from bastion.schemas.health import HealthResponse

API_VERSION = "0.1.0"

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(db: DbSession) -> HealthResponse:
    """
    Return service health status and database connectivity.
    Used by load balancers and monitoring; needs no tenant header.
    """
    db_status = "connected" if check_db_connected(db) else "disconnected"

    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        version=API_VERSION,
        database=db_status,
    )
