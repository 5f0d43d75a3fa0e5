"""Service layer helpers"""

from .recovery import get_recovery_aggregator, get_stranded_monitor, get_sweep_orchestrator
from .session_commands import (
    CommandResult,
    SessionCommands,
    get_refresh_controller,
    get_session_commands,
)
from .stranded_monitor import MonitorTick, StrandedWalletMonitor

__all__ = [
    "CommandResult",
    "SessionCommands",
    "get_refresh_controller",
    "get_session_commands",
    "MonitorTick",
    "StrandedWalletMonitor",
    "get_recovery_aggregator",
    "get_stranded_monitor",
    "get_sweep_orchestrator",
]
