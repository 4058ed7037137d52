"""
Structured Logging Setup
========================
Configures structlog for the OTP service.

Usage:
    from otp_core.logging import configure_logging

    configure_logging(service_name="otp-core", level="INFO")

    logger = structlog.get_logger(__name__)
    logger.info("OTP sent", verification_id=vid, phone=mask_phone(phone))

Phone numbers are logged masked. Codes are never logged.
"""

import logging
import sys
from typing import Any, Dict, List

import structlog


def _add_service(service_name: str):
    def processor(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict
    return processor


def configure_logging(
    service_name: str = "otp-core",
    level: str = "INFO",
    json_output: bool = True,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        service_name: Name attached to every log line
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render JSON lines (production) instead of console output
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service(service_name),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Third-party libraries (httpx, sqlalchemy) log through the stdlib
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    ))
    root_logger.addHandler(handler)
    root_logger.setLevel(max(log_level, logging.WARNING))

    structlog.get_logger(__name__).info("Logging configured", level=level.upper())


def bind_request_context(**values: Any) -> None:
    """Bind values (e.g., request_id) to every log line in the current context."""
    structlog.contextvars.bind_contextvars(**values)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
