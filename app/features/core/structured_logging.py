"""
Structured logging configuration.

structlog is the front end; stdlib logging handlers do the output so that
uvicorn, SQLAlchemy, httpx and Celery records share the same renderer and
carry the request id and tenant id of the request that produced them.
"""
import logging
import sys
import time
from typing import Optional
from contextlib import contextmanager

import structlog
from structlog.stdlib import LoggerFactory


def configure_logging(
    level: str = "INFO",
    format_type: str = "auto",  # "auto", "console" or "json"
    enable_json: bool = False,
    enable_request_id: bool = True,
    log_file: Optional[str] = None,
):
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: 'console', 'json', or 'auto' to follow ``enable_json``
        enable_json: Use JSON output when format_type is 'auto'
        enable_request_id: Whether to include request IDs in logs
        log_file: Optional file that receives the same records as stdout
    """
    if format_type == "auto":
        format_type = "json" if enable_json else "console"

    processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if enable_request_id:
        processors.append(add_request_id)

    processors.append(add_tenant_context)

    if format_type == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=processors,
    )

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level))

    _configure_application_loggers(level)

    logger = structlog.get_logger(__name__)
    logger.info(
        "Structured logging initialized",
        log_level=level,
        format_type=format_type,
        request_id_enabled=enable_request_id,
        log_file=log_file,
    )


def _configure_application_loggers(level: str):
    """Configure application and third-party logger levels."""
    for logger_name in ("app", "app.features", "app.middleware", "celery"):
        logging.getLogger(logger_name).setLevel(getattr(logging, level))

    third_party_loggers = {
        "uvicorn": "INFO",
        "uvicorn.access": "INFO",
        "sqlalchemy.engine": "WARNING",
        "sqlalchemy.pool": "WARNING",
        "httpx": "WARNING",
        "httpcore": "WARNING",
        "anthropic": "WARNING",
        "openai": "WARNING",
    }

    for logger_name, logger_level in third_party_loggers.items():
        logging.getLogger(logger_name).setLevel(getattr(logging, logger_level))


def add_request_id(logger, method_name, event_dict):
    """Processor to add request ID to log records."""
    from app.middleware.request_id import request_id_ctx_var

    request_id = request_id_ctx_var.get(None)
    if request_id:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def add_tenant_context(logger, method_name, event_dict):
    """Processor to add tenant context to log records."""
    from app.middleware.tenant import tenant_ctx_var

    tenant_id = tenant_ctx_var.get(None)
    if tenant_id:
        event_dict.setdefault("tenant_id", tenant_id)
    return event_dict


@contextmanager
def log_performance(operation_name: str, logger: Optional[structlog.BoundLogger] = None,
                    **context):
    """
    Context manager to log how long an operation took.

    Usage:
        with log_performance("press_full_scan", tenant_id=tenant_id):
            await service.run_full_scan()
    """
    if logger is None:
        logger = structlog.get_logger("performance")

    start_time = time.monotonic()
    success = True

    try:
        yield
    except Exception as e:
        success = False
        logger.error(
            f"Operation {operation_name} failed",
            operation=operation_name,
            error=str(e),
            **context
        )
        raise
    finally:
        duration = time.monotonic() - start_time
        logger.info(
            f"Operation {operation_name} completed",
            operation=operation_name,
            duration_seconds=duration,
            success=success,
            **context
        )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
