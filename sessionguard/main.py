from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import health, recovery, session
from .api.errors import register_exception_handlers
from .config import settings
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware
from .services.recovery import get_stranded_monitor, get_sweep_orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    monitor = get_stranded_monitor() if settings.stranded_monitor_enabled else None
    if monitor is not None:
        monitor.start()
    try:
        yield
    finally:
        if monitor is not None:
            await monitor.stop()
        await get_sweep_orchestrator().aclose()


# Create FastAPI app
app = FastAPI(
    title="Session Guard API",
    description="Trading-session operation guards and ephemeral wallet fund recovery",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
register_exception_handlers(app)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(session.router)
app.include_router(recovery.router)


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Session Guard API",
        "version": "0.1.0",
        "description": "Trading-session operation guards and ephemeral wallet fund recovery",
        "docs": "/docs",
        "health": "/healthz"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "sessionguard.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
