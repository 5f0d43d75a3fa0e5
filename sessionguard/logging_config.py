"""
Structured logging for sessionguard.

Sweep, validation and monitor events share one structlog pipeline, so the
JSON output doubles as the recovery audit trail. SOL amounts are Decimals in
the core and are rendered as plain numbers.
"""

import logging
import sys
from decimal import Decimal
from typing import List, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from .config import settings

NOISY_LOGGERS = ("uvicorn.access", "httpcore", "httpx")


def decimals_to_float(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Render Decimal amounts as JSON numbers instead of repr strings."""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = float(value)
    return event_dict


def _use_json(log_format: str, level: int) -> bool:
    if log_format == "json":
        return True
    if log_format == "console":
        return False
    # auto: console only while debugging
    return level != logging.DEBUG


def build_processors(json_logs: bool) -> List[Processor]:
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        decimals_to_float,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
    return processors


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        log_level: Override settings.log_level
        log_format: "json", "console" or "auto" (default: settings.log_format)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    json_logs = _use_json((log_format or settings.log_format).lower(), level)
    shared = build_processors(json_logs)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
