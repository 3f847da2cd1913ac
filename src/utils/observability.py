"""
Structured Logging & Observability
Production-grade logging that's both human-readable and machine-parseable.
"""
import sys
from loguru import logger
from typing import Any, Dict
from src.config import get_settings


def configure_logging():
    """
    Configure loguru for production observability.

    In development: Human-readable colorized output
    In production: Structured JSON logs for ingestion (ELK, Datadog, etc.)
    """
    settings = get_settings()

    # Remove default handler
    logger.remove()

    if not settings.enable_structured_logging:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "{message}"
            ),
            level=settings.log_level,
            colorize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format="{message}",
            level=settings.log_level,
            serialize=True,  # Output as JSON
        )

    logger.info(f"Logging configured: level={settings.log_level}, structured={settings.enable_structured_logging}")


def log_agent_execution(
    agent_name: str,
    session_id: str,
    action: str,
    duration_ms: float | None = None,
    **context
):
    """
    Structured logging for component executions.

    Args:
        agent_name: Name of the component (e.g., "SessionOrchestrator")
        session_id: The session being processed
        action: What action was performed (e.g., "init_session", "enrich")
        duration_ms: Execution time in milliseconds
        **context: Additional context (stage, outcome, etc.)

    Example:
        >>> log_agent_execution(
        ...     agent_name="SessionOrchestrator",
        ...     session_id="session-1712345678901-a1b2c3",
        ...     action="init_session",
        ...     duration_ms=234.5,
        ...     context_ready=True
        ... )
    """
    log_data = {
        "agent": agent_name,
        "session_id": session_id,
        "action": action,
    }

    if duration_ms is not None:
        log_data["duration_ms"] = round(duration_ms, 2)

    log_data.update(context)

    logger.bind(**log_data).info(f"{agent_name} | {action}")


def log_business_event(
    event_type: str,
    session_id: str,
    **details: Dict[str, Any]
):
    """
    Log business-critical events for analytics.

    Examples:
        - Stage transitions
        - Enrichment completed
        - Follow-up requested

    Args:
        event_type: Type of event (e.g., "stage_transition", "enrichment_completed")
        session_id: The session involved
        **details: Event-specific data
    """
    log_data = {
        "event_type": event_type,
        "session_id": session_id,
        **details
    }

    logger.bind(**log_data).success(f"Business Event: {event_type}")
