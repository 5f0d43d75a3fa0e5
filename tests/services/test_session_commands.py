"""
Tests for validated session control commands.
"""

import pytest

from fakes import FakeSessionControl, session
from sessionguard.core.errors import (
    BackendUnavailableError,
    MalformedInputError,
    OperationErrorKind,
    PreconditionFailedError,
)
from sessionguard.core.session import OperationType, SessionStatus, ValidationRefreshController
from sessionguard.services.session_commands import SessionCommands


def commands_for(*sessions):
    control = FakeSessionControl(*sessions)
    return SessionCommands(control), control


class TestSessionCommands:
    @pytest.mark.asyncio
    async def test_pause_forwards_when_allowed(self):
        commands, control = commands_for(session("0.01"))

        result = await commands.pause("session-1")

        assert result.ok is True
        assert result.to_dict() == {"success": True, "operation": "pause"}
        assert control.calls == [("pause", "session-1")]
        assert control.sessions["session-1"].status == SessionStatus.PAUSED

    @pytest.mark.asyncio
    async def test_resume_blocked_by_balance_is_not_forwarded(self):
        commands, control = commands_for(session("0.0025", status=SessionStatus.PAUSED))

        result = await commands.resume("session-1")

        assert result.ok is False
        assert result.error.kind == OperationErrorKind.INSUFFICIENT_BALANCE_FOR_RESUME
        assert control.calls == []
        data = result.to_dict()
        assert data["error"]["code"] == "INSUFFICIENT_BALANCE_FOR_RESUME"
        assert data["advice"]["title"] == "Cannot resume session"

    @pytest.mark.asyncio
    async def test_stop_allowed_on_critical_balance(self):
        commands, control = commands_for(session("0"))

        result = await commands.stop("session-1")

        assert result.ok is True
        assert control.calls == [("stop", "session-1")]

    @pytest.mark.asyncio
    async def test_terminal_session_blocks_stop(self):
        commands, control = commands_for(session("1", status=SessionStatus.COMPLETED))

        result = await commands.stop("session-1")

        assert result.error.kind == OperationErrorKind.SESSION_TERMINAL
        assert control.calls == []

    @pytest.mark.asyncio
    async def test_validation_reflects_state_after_command(self):
        commands, _ = commands_for(session("0.01"))

        assert (await commands.pause("session-1")).ok is True
        second = await commands.pause("session-1")

        assert second.error.kind == OperationErrorKind.ALREADY_PAUSED

    @pytest.mark.asyncio
    async def test_upstream_refusal_becomes_result(self):
        commands, control = commands_for(session("0.01"))
        control.errors["pause"] = PreconditionFailedError("Session is settling")

        result = await commands.pause("session-1")

        assert result.ok is False
        assert result.error.kind == OperationErrorKind.PRECONDITION_FAILED
        assert result.error.message == "Session is settling"

    @pytest.mark.asyncio
    async def test_unknown_session(self):
        commands, _ = commands_for()

        result = await commands.stop("missing")

        assert result.error.kind == OperationErrorKind.SESSION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_backend_down_during_fetch(self):
        class DownControl(FakeSessionControl):
            async def get_session(self, session_id):
                raise BackendUnavailableError("timeout")

        result = await SessionCommands(DownControl()).pause("session-1")

        assert result.error.kind == OperationErrorKind.BACKEND_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_controller_is_invalidated_after_command(self):
        control = FakeSessionControl(session("0.01"))
        controller = ValidationRefreshController(session_control=control)
        commands = SessionCommands(control, controller)

        await commands.pause("session-1")

        assert controller.latest("session-1") is None

    @pytest.mark.asyncio
    async def test_execute_accepts_operation_strings(self):
        commands, _ = commands_for(session("0.01"))
        result = await commands.execute("session-1", "stop")
        assert result.operation == OperationType.STOP

    @pytest.mark.asyncio
    async def test_malformed_input(self):
        commands, _ = commands_for(session("0.01"))
        with pytest.raises(MalformedInputError):
            await commands.execute("session-1", "liquidate")
        with pytest.raises(MalformedInputError):
            await commands.pause("bad id")
