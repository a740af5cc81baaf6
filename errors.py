"""
API error types and their JSON rendering.

Every failure a route can report is an ``ApiError``; the app turns it into
``{"error": message}`` with the error's status code.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationConflict(ApiError):
    status_code = 400
    default_message = "User already exists"


class AuthenticationFailure(ApiError):
    status_code = 400
    default_message = "Invalid credentials"


class AuthorizationMissing(ApiError):
    status_code = 401
    default_message = "Access token required"


class AuthorizationInvalid(ApiError):
    status_code = 403
    default_message = "Invalid token"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class InternalFailure(ApiError):
    status_code = 500


@contextmanager
def handler_boundary(message: str) -> Iterator[None]:
    """Convert anything that is not an ``ApiError`` into ``InternalFailure``."""
    try:
        yield
    except ApiError:
        raise
    except Exception as exc:
        logger.exception("%s", message)
        raise InternalFailure(message) from exc


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.info("Rejected request body for %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
