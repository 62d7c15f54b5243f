"""
SEOgen Receiver - Health Check Router

- GET /health  Liveness check: returns 200 if the process is up
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from .. import __version__
from ..container import ReceiverContainer, get_container

router = APIRouter(prefix="/health", tags=["Health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    environment: str
    version: str
    storage: str


@router.get("", response_model=HealthResponse)
def health(container: ReceiverContainer = Depends(get_container)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment=container.settings.ENVIRONMENT,
        version=__version__,
        storage="postgres" if container.pool is not None else "memory",
    )
