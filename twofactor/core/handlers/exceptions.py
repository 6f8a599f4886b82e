from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from twofactor.core.errors import error_envelope
from twofactor.core.exceptions import AppError
from twofactor.core.utils.request_id import get_request_id

logger = logging.getLogger(__name__)


def add_exception_handlers(app: FastAPI) -> None:
    # --- Domain exceptions ---

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "Request failed path=%s code=%s request_id=%s",
                request.url.path,
                exc.code,
                get_request_id(),
            )
        return JSONResponse(status_code=exc.status_code, content=error_envelope(exc.code, exc.message))

    # --- Framework exceptions ---

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=error_envelope("validation_error", "Invalid request payload"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(f"http_{exc.status_code}", detail),
            headers=getattr(exc, "headers", None),
        )

    # --- Catch-all for unhandled exceptions ---

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_envelope("internal_error", "Unexpected error"),
        )
