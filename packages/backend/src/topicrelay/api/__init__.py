"""API route aggregation.

All routers registered here get mounted in main.py. The relay has no
user authentication of its own: /api/token is how clients obtain the
credential the broker checks.
"""

from fastapi import APIRouter

from topicrelay.api.health import router as health_router
from topicrelay.api.messages import router as messages_router
from topicrelay.api.token import router as token_router
from topicrelay.api.topics import router as topics_router

api_router = APIRouter(prefix="/api")
api_router.include_router(token_router, tags=["token"])
api_router.include_router(messages_router, tags=["messages"])
api_router.include_router(topics_router, tags=["topics"])

__all__ = ["api_router", "health_router"]
