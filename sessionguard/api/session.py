"""
Session API Endpoints

Operation validation and validated pause/resume/stop for trading sessions.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.errors import MalformedInputError
from ..core.recovery import validate_session_id
from ..core.session import OperationType, ValidationRefreshController
from ..services.session_commands import (
    CommandResult,
    SessionCommands,
    get_refresh_controller,
    get_session_commands,
)
from .errors import status_for

router = APIRouter(prefix="/api/session", tags=["Session"])


def _parse_operation(operation: str) -> OperationType:
    try:
        return OperationType(operation)
    except ValueError as e:
        raise MalformedInputError(
            f"Unknown operation: {operation}", details={"operation": operation}
        ) from e


def _command_response(result: CommandResult) -> JSONResponse:
    body = result.to_dict()
    if result.ok:
        return JSONResponse(status_code=200, content=body)
    return JSONResponse(status_code=status_for(result.error), content=body)


@router.get("/{session_id}/validate")
async def validate_session(
    session_id: str,
    operation: Optional[str] = None,
    controller: ValidationRefreshController = Depends(get_refresh_controller),
) -> Dict[str, Any]:
    """Validate one operation, or all three when no operation is given."""
    validate_session_id(session_id)
    op = _parse_operation(operation) if operation is not None else None

    validations = await controller.refresh(session_id)

    if op is not None:
        return {
            "success": True,
            "sessionId": session_id,
            "operation": op.value,
            "validation": validations[op].to_dict(),
        }

    return {
        "success": True,
        "sessionId": session_id,
        "validation": validations.to_dict(),
        "controlsVisible": validations.controls_visible,
    }


@router.post("/{session_id}/pause")
async def pause_session(
    session_id: str,
    commands: SessionCommands = Depends(get_session_commands),
) -> JSONResponse:
    return _command_response(await commands.pause(session_id))


@router.post("/{session_id}/resume")
async def resume_session(
    session_id: str,
    commands: SessionCommands = Depends(get_session_commands),
) -> JSONResponse:
    return _command_response(await commands.resume(session_id))


@router.post("/{session_id}/stop")
async def stop_session(
    session_id: str,
    commands: SessionCommands = Depends(get_session_commands),
) -> JSONResponse:
    return _command_response(await commands.stop(session_id))
