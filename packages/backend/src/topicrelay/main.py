"""FastAPI application factory.

Learn: create_app() wires one immutable Settings value into the
credential issuer, the broker publisher, and the message router, and
parks them on app.state. The lifespan owns the publisher's shared
httpx client so connections to the broker are pooled across requests.
"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from topicrelay import __version__
from topicrelay.api import api_router, health_router
from topicrelay.auth.credentials import CredentialIssuer
from topicrelay.config import Settings, settings as default_settings
from topicrelay.errors import register_error_handlers
from topicrelay.middleware.request_id import RequestIdMiddleware
from topicrelay.middleware.security import SecurityHeadersMiddleware
from topicrelay.realtime.publisher import ChannelPublisher
from topicrelay.services.message_router import MessageRouter

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    cfg: Settings = app.state.settings
    logger.info(
        "relay.starting",
        version=__version__,
        environment=cfg.environment,
        port=cfg.port,
        broker_url=cfg.broker_url,
    )

    client = httpx.AsyncClient(timeout=cfg.publish_timeout_seconds)
    app.state.publisher = ChannelPublisher(cfg, client)
    app.state.message_router = MessageRouter(app.state.publisher, cfg.topics)

    yield

    logger.info("relay.shutdown")
    await client.aclose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    cfg = settings or default_settings

    app = FastAPI(
        title="Topic Relay",
        description="Topic-scoped real-time messaging relay",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.issuer = CredentialIssuer(cfg)
    # Replaced by the lifespan with a pooled client; usable without it in tests
    app.state.publisher = ChannelPublisher(cfg)
    app.state.message_router = MessageRouter(app.state.publisher, cfg.topics)

    # Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → Security → RequestId → handler
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Authorization"],
    )

    register_error_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: topicrelay.main:app)
app = create_app()
