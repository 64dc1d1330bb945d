"""Pydantic schemas for messages, credentials, and topics.

Learn: Message is frozen. Once the router builds it, the same object
is serialized for every channel it fans out to and returned to the
caller, so every copy carries an identical body.
"""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field


def new_message_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─── Message ──────────────────────────────────────────────


class Message(BaseModel):
    id: str = Field(default_factory=new_message_id)
    topic: str
    content: str
    author: str
    timestamp: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}


class SendMessageRequest(BaseModel):
    # Emptiness is checked by the router so it can answer 400, not 422
    topic: str = ""
    content: str = ""
    author: str = ""


class SendMessageResponse(BaseModel):
    success: bool = True
    message: Message


# ─── Credentials ──────────────────────────────────────────


class TokenRequest(BaseModel):
    user: str = ""


class TokenResponse(BaseModel):
    token: str


# ─── Topics ───────────────────────────────────────────────


class TopicsResponse(BaseModel):
    topics: list[str]
