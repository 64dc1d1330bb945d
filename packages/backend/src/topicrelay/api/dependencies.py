"""FastAPI dependencies for relay components.

Learn: the app factory builds one issuer and one message router at
startup and parks them on app.state. Routes pull them through these
dependencies, and tests swap them via app.dependency_overrides.
"""

from fastapi import Request

from topicrelay.auth.credentials import CredentialIssuer
from topicrelay.config import Settings
from topicrelay.services.message_router import MessageRouter


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_issuer(request: Request) -> CredentialIssuer:
    return request.app.state.issuer


def get_message_router(request: Request) -> MessageRouter:
    return request.app.state.message_router
