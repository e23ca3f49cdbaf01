"""
Error kinds raised by the workflow layer and the handlers that render them.

Workflow code raises these plain exceptions; it never builds HTTP responses.
The handlers registered by :func:`register_exception_handlers` translate them
into JSON bodies of the form ``{"detail": ..., "error": ...}``.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


class WorkflowError(Exception):
    """Base class for errors a caller can act on."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def kind(self) -> str:
        return type(self).__name__


class NotFound(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(WorkflowError):
    status_code = status.HTTP_403_FORBIDDEN


class DuplicateApplication(WorkflowError):
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(WorkflowError):
    status_code = status.HTTP_409_CONFLICT


class ValidationFailed(WorkflowError):
    status_code = 422


class DispatchFailed(WorkflowError):
    """Notification delivery error. Logged by the dispatcher, never surfaced."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.kind},
    )


async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": GENERIC_ERROR_MESSAGE, "error": "InternalError"},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": GENERIC_ERROR_MESSAGE, "error": "InternalError"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WorkflowError, workflow_error_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
