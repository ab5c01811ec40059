"""
Error taxonomy shared by every handler.

Each error knows the HTTP status it maps to; ``register_error_handlers``
renders them as ``{"success": false, "message": ..., "error": ...}``.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CourseHubError(Exception):
    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_body(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.error:
            body["error"] = self.error
        return body


class ValidationError(CourseHubError):
    status_code = 400


class NotFoundError(CourseHubError):
    status_code = 404


class ConflictError(CourseHubError):
    status_code = 409


class GatewayError(CourseHubError):
    status_code = 500


class StoreError(CourseHubError):
    """
    A store operation failed. ``not_applied`` is set when the server is known
    not to have carried out the write, so repeating it cannot double-apply.
    """

    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None, not_applied: bool = False):
        super().__init__(message, error)
        self.not_applied = not_applied


class DataIntegrityError(CourseHubError):
    status_code = 500


async def coursehub_error_handler(request: Request, exc: CourseHubError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.error)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(CourseHubError, coursehub_error_handler)
