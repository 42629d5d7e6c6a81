"""Health check endpoint with database connectivity check."""

from typing import Annotated

from fastapi import APIRouter, Depends

from accounts.core.config import Settings, get_settings
from accounts.core.database import Database, get_database
from accounts.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
async def get_health(
    database: Annotated[Database, Depends(get_database)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """Return service status, environment and whether the database answers a trivial query."""
    connected = await database.check_connected()
    return HealthResponse(
        service=settings.APP_NAME,
        environment=settings.APP_ENV,
        database="connected" if connected else "disconnected",
    )
