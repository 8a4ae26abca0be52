"""Map domain and framework errors onto plain-text HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError

from .errors import StockServiceError

_LOGGER = logging.getLogger(__name__)


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "Invalid data: " + "; ".join(parts)


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StockServiceError)
    async def stock_error_handler(request: Request, exc: StockServiceError) -> PlainTextResponse:
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            _LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            _LOGGER.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> PlainTextResponse:
        message = _describe_validation_errors(exc)
        _LOGGER.warning("%s %s rejected: %s", request.method, request.url.path, message)
        return PlainTextResponse(message, status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> PlainTextResponse:
        _LOGGER.error("%s %s hit a storage failure", request.method, request.url.path, exc_info=exc)
        return PlainTextResponse(
            "Unexpected storage failure", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
