"""Centralized logging service using loguru."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from searchscope.config import Settings

NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "sse_starlette.sse",
    "httpx",
    "httpcore",
    "hpack",
    "openai._base_client",
    "anthropic._base_client",
    "asyncio",
)


def configure_logging(settings: Settings, *, file_sink: bool = True) -> None:
    """Install console and rotating file sinks for the given settings."""
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.app_log_level.upper(),
        colorize=True,
    )

    if file_sink:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "searchscope_{time:YYYY-MM-DD}.log",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
            rotation="00:00",
            retention="7 days",
            compression="zip",
        )

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_llm_call(
    model: str,
    caller: str,
    duration_ms: int = 0,
    prompt_chars: int = 0,
    response_chars: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log a text-generation call."""
    call_data = {
        "timestamp": _now(),
        "model": model,
        "caller": caller,
        "prompt_chars": prompt_chars,
        "response_chars": response_chars,
        "duration_ms": duration_ms,
        "status": status,
        "error": error,
    }
    if error:
        logger.error(f"LLM_CALL_FAILED: {call_data}")
    else:
        logger.info(f"LLM_CALL: {call_data}")


def log_provider_call(
    provider: str,
    query: str,
    page: int,
    result_count: int = 0,
    total_results: int = 0,
    duration_ms: int = 0,
    error: Optional[str] = None,
) -> None:
    """Log one provider search request."""
    call_data = {
        "timestamp": _now(),
        "provider": provider,
        "query": query[:120],
        "page": page,
        "result_count": result_count,
        "total_results": total_results,
        "duration_ms": duration_ms,
        "error": error,
    }
    if error:
        logger.error(f"PROVIDER_CALL_FAILED: {call_data}")
    else:
        logger.info(f"PROVIDER_CALL: {call_data}")


def log_agent_stage(
    run_id: str,
    stage: str,
    status: str,
    data: Optional[dict[str, Any]] = None,
) -> None:
    """Log an agent stage transition."""
    step_data = {
        "timestamp": _now(),
        "run_id": run_id,
        "stage": stage,
        "status": status,
        "data": data,
    }
    logger.info(f"AGENT_STAGE: {step_data}")


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": _now(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {event_data}")
