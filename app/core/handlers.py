"""Exception handlers translating errors into ``{"message": ...}`` responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import Settings
from app.core.errors import HelpdeskError

logger = logging.getLogger(__name__)

INTERNAL_SERVER_ERROR = "Internal server error"


async def helpdesk_exception_handler(request: Request, exc: HelpdeskError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report request validation failures as 400 with the first offending field."""

    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"] if item != "body")
        parts.append(f"{location}: {error['msg']}" if location else str(error["msg"]))
    message = "; ".join(parts) or "Request validation failed"
    return JSONResponse(status_code=400, content={"message": message})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content = {"message": INTERNAL_SERVER_ERROR}
        if settings.is_development:
            content["detail"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    app.add_exception_handler(HelpdeskError, helpdesk_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unexpected_exception_handler)
