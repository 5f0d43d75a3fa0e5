from typing import Any, Dict

from fastapi import APIRouter

from ..config import settings
from ..providers.upstream import get_upstream_client

router = APIRouter()


@router.get("/healthz")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint that verifies the session manager is reachable"""
    upstream = await get_upstream_client().health_check()

    return {
        "status": "healthy" if upstream["status"] == "healthy" else "degraded",
        "providers": {"session_manager": upstream},
        "upstream_configured": settings.has_upstream_key,
        "stranded_monitor_enabled": settings.stranded_monitor_enabled,
    }
