"""Error taxonomy and the JSON handlers that render it."""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TaskError(Exception):
    """Base class for errors the API reports to clients."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TaskValidationError(TaskError):
    """Input rejected before it reached the store."""

    status_code = status.HTTP_400_BAD_REQUEST


class TaskNotFoundError(TaskError):
    """The requested task id does not exist."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, task_id: int) -> None:
        super().__init__("not found")
        self.task_id = task_id


def _clean_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # ctx may carry the raw exception object, which is not JSON serializable
    return [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in errors
    ]


def _first_message(errors: List[Dict[str, Any]]) -> str:
    if not errors:
        return "invalid request"
    msg = str(errors[0].get("msg", "invalid request"))
    prefix = "Value error, "
    return msg[len(prefix):] if msg.startswith(prefix) else msg


# PUBLIC_INTERFACE
def register_error_handlers(app: FastAPI) -> None:
    """
    Register JSON error handlers on the app.

    Response format:
        {"error": "<message>"}                     for TaskError subclasses
        {"error": "<message>", "detail": [...]}    for request validation errors

    Request validation failures are reported as 400 rather than FastAPI's
    default 422 so that every malformed body maps to the same status.
    """

    @app.exception_handler(TaskError)
    async def task_error_handler(request: Request, exc: TaskError) -> JSONResponse:
        logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = _clean_errors(list(exc.errors()))
        logger.warning("Validation error on %s %s: %s", request.method, request.url.path, errors)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": _first_message(errors), "detail": errors},
        )
