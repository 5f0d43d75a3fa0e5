"""
Recovery API Endpoints

Recovery status of a session's ephemeral wallets and manual sweeps back to
the session vault.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.recovery import (
    SWEEP_IN_PROGRESS,
    RecoveryStatusAggregator,
    SweepOrchestrator,
)
from ..services.recovery import get_recovery_aggregator, get_sweep_orchestrator

router = APIRouter(prefix="/api/recovery", tags=["Recovery"])


@router.get("/{session_id}")
async def get_recovery_status(
    session_id: str,
    aggregator: RecoveryStatusAggregator = Depends(get_recovery_aggregator),
) -> Dict[str, Any]:
    """Per-wallet recovery status and totals for a session."""
    status = await aggregator.get_status(session_id)
    return {"success": True, **status.to_dict()}


@router.post("/{session_id}/sweep")
async def sweep_session(
    session_id: str,
    orchestrator: SweepOrchestrator = Depends(get_sweep_orchestrator),
) -> JSONResponse:
    """Sweep every stranded wallet of a session back to its vault."""
    results = await orchestrator.sweep(session_id)

    status_code = 200
    if results.error == SWEEP_IN_PROGRESS:
        status_code = 409
    elif results.error is not None:
        status_code = 503
    return JSONResponse(status_code=status_code, content=results.to_dict())
