"""Error envelope and exception handlers for the HTTP API."""

from typing import Any, Dict

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.errors import (
    OperationError,
    OperationErrorKind,
    SessionGuardError,
    describe_error,
)

logger = structlog.stdlib.get_logger(__name__)

STATUS_BY_KIND: Dict[OperationErrorKind, int] = {
    OperationErrorKind.SESSION_TERMINAL: 400,
    OperationErrorKind.SESSION_NOT_PAUSED: 400,
    OperationErrorKind.ALREADY_PAUSED: 400,
    OperationErrorKind.INSUFFICIENT_BALANCE_FOR_PAUSE: 400,
    OperationErrorKind.INSUFFICIENT_BALANCE_FOR_RESUME: 400,
    OperationErrorKind.PRECONDITION_FAILED: 400,
    OperationErrorKind.MALFORMED_INPUT: 400,
    OperationErrorKind.UNAUTHORIZED: 403,
    OperationErrorKind.SESSION_NOT_FOUND: 404,
    OperationErrorKind.SWEEP_IN_PROGRESS: 409,
    OperationErrorKind.TRANSFER_FAILED: 502,
    OperationErrorKind.BACKEND_UNAVAILABLE: 503,
}


def status_for(error: OperationError) -> int:
    return STATUS_BY_KIND.get(error.kind, 500)


def error_body(error: OperationError) -> Dict[str, Any]:
    return {
        "success": False,
        "error": error.to_dict(),
        "advice": describe_error(error).to_dict(),
    }


def error_response(error: OperationError) -> JSONResponse:
    return JSONResponse(status_code=status_for(error), content=error_body(error))


async def sessionguard_error_handler(request: Request, exc: SessionGuardError) -> JSONResponse:
    error = exc.to_operation_error()
    status_code = status_for(error)
    if status_code >= 500:
        logger.error("request_failed", path=request.url.path, code=error.kind.value, error=exc.message)
    return error_response(error)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SessionGuardError, sessionguard_error_handler)
