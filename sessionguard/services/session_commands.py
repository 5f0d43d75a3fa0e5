"""
Session control commands.

Guards pause, resume and stop with a validation of freshly fetched session
state, then forwards the command to the session manager. Every outcome,
including upstream refusals, is returned as a CommandResult.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog

from ..core.errors import (
    MalformedInputError,
    OperationError,
    SessionGuardError,
    ValidationBlockedError,
    describe_error,
)
from ..core.ports import SessionControl
from ..core.recovery.models import validate_session_id
from ..core.session import (
    OperationType,
    OperationValidations,
    ValidationRefreshController,
)
from ..providers.upstream import get_upstream_client

logger = structlog.stdlib.get_logger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Result of a session control command: ok, or the reason it failed."""

    operation: OperationType
    ok: bool
    error: Optional[OperationError] = None
    validations: Optional[OperationValidations] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.ok, "operation": self.operation.value}
        if self.error is not None:
            data["error"] = self.error.to_dict()
            data["advice"] = describe_error(self.error).to_dict()
        return data


class SessionCommands:
    """
    Validated pause/resume/stop for sessions.

    Usage:
        commands = SessionCommands(session_control, controller)
        result = await commands.pause("session-123")
        if not result.ok:
            print(describe_error(result.error).suggestion)

    The validation here only saves a round trip for commands that are bound
    to fail; the session manager re-checks every precondition itself.
    """

    def __init__(
        self,
        session_control: SessionControl,
        controller: Optional[ValidationRefreshController] = None,
    ) -> None:
        self.session_control = session_control
        self.controller = controller or ValidationRefreshController(session_control=session_control)

    async def pause(self, session_id: str) -> CommandResult:
        return await self.execute(session_id, OperationType.PAUSE)

    async def resume(self, session_id: str) -> CommandResult:
        return await self.execute(session_id, OperationType.RESUME)

    async def stop(self, session_id: str) -> CommandResult:
        return await self.execute(session_id, OperationType.STOP)

    async def execute(self, session_id: str, operation: OperationType) -> CommandResult:
        """
        Validate and forward a command.

        Raises:
            MalformedInputError: Invalid session ID or operation
        """
        validate_session_id(session_id)
        try:
            operation = OperationType(operation)
        except ValueError as e:
            raise MalformedInputError(f"Unknown operation: {operation}") from e

        try:
            validations = await self.controller.refresh(session_id)
        except SessionGuardError as e:
            return self._failed(session_id, operation, e)

        try:
            validations.require(operation)
        except ValidationBlockedError as e:
            logger.info(
                "session_command_blocked",
                session_id=session_id,
                operation=operation.value,
                category=e.category.value,
                code=e.kind.value,
            )
            return CommandResult(operation, ok=False, error=e.error, validations=validations)

        try:
            await getattr(self.session_control, operation.value)(session_id)
        except SessionGuardError as e:
            return self._failed(session_id, operation, e)
        finally:
            # Session state changed (or may have); next read must refetch
            self.controller.invalidate(session_id)

        logger.info("session_command_completed", session_id=session_id, operation=operation.value)
        return CommandResult(operation, ok=True, validations=validations)

    @staticmethod
    def _failed(session_id: str, operation: OperationType, error: SessionGuardError) -> CommandResult:
        logger.warning(
            "session_command_failed",
            session_id=session_id,
            operation=operation.value,
            category=error.category.value,
            error=error.message,
        )
        return CommandResult(operation, ok=False, error=error.to_operation_error())


# Singleton instances
_controller: Optional[ValidationRefreshController] = None
_session_commands: Optional[SessionCommands] = None


def get_refresh_controller() -> ValidationRefreshController:
    """Get the singleton validation refresh controller."""
    global _controller
    if _controller is None:
        _controller = ValidationRefreshController(session_control=get_upstream_client())
    return _controller


def get_session_commands() -> SessionCommands:
    """Get the singleton session command service."""
    global _session_commands
    if _session_commands is None:
        _session_commands = SessionCommands(get_upstream_client(), get_refresh_controller())
    return _session_commands
