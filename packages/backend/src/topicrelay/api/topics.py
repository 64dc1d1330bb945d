"""Topic catalog API — GET /api/topics."""

from fastapi import APIRouter, Depends

from topicrelay.api.dependencies import get_message_router
from topicrelay.schemas.message import TopicsResponse
from topicrelay.services.message_router import MessageRouter

router = APIRouter()


@router.get("/topics", response_model=TopicsResponse)
async def list_topics(message_router: MessageRouter = Depends(get_message_router)):
    """Fixed catalog. "all" aggregates messages from every other topic."""
    return TopicsResponse(topics=list(message_router.catalog))
