"""Health check endpoint.

Learn: liveness only. The broker is not probed; a slow broker must not
make the relay look dead to its orchestrator.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from topicrelay import __version__
from topicrelay.api.dependencies import get_settings
from topicrelay.config import Settings

router = APIRouter()


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)):
    return {
        "status": "healthy",
        "version": __version__,
        "time": datetime.now(timezone.utc).isoformat(),
        "broker_url": settings.broker_url,
    }
