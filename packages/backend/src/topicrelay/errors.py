"""Error response shape.

Every error the relay returns is ``{"error": "<message>"}``, the shape
the web client reads, instead of FastAPI's default ``{"detail": ...}``.
Body validation failures are a plain 400, not 422.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger()


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.info(
            "relay.bad_request",
            path=request.url.path,
            errors=len(exc.errors()),
        )
        return JSONResponse(status_code=400, content={"error": "Invalid request format"})
