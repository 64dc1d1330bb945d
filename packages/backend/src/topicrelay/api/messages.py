"""Message API — POST /api/messages."""

from fastapi import APIRouter, Depends, HTTPException

from topicrelay.api.dependencies import get_message_router
from topicrelay.realtime.publisher import PublishError
from topicrelay.schemas.message import SendMessageRequest, SendMessageResponse
from topicrelay.services.message_router import MessageRouter, MessageValidationError

router = APIRouter()


@router.post("/messages", response_model=SendMessageResponse)
async def send_message(
    body: SendMessageRequest,
    message_router: MessageRouter = Depends(get_message_router),
):
    """Send a message to a topic.

    Sending to "all" broadcasts to every topic and always succeeds.
    Sending to a concrete topic fails with 500 only if that topic's own
    channel rejects the publish.
    """
    try:
        message = await message_router.route(body.topic, body.content, body.author)
    except MessageValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PublishError:
        raise HTTPException(status_code=500, detail="Failed to send message")

    return SendMessageResponse(success=True, message=message)
