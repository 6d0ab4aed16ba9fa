"""
Logging utilities for job-scoped structured logging.

Every poll, merge and callback failure is logged against a job id so a
single job's lifecycle can be followed with one grep.

Dependencies: logging (stdlib)
System role: Logging helper functions
"""

import enum
import logging
from datetime import datetime
from typing import Any


def safe_log_value(value: Any, max_length: int = 200) -> str:
    """
    Safely convert any value to a short string for log extras.

    Args:
        value: Value to convert
        max_length: Maximum length before truncating

    Returns:
        str: Safe string representation
    """
    try:
        if value is None:
            return "None"
        if isinstance(value, enum.Enum):
            val_str = str(value.value)
        elif isinstance(value, datetime):
            val_str = value.isoformat()
        elif isinstance(value, (list, tuple)):
            val_str = f"{type(value).__name__}({len(value)} items)"
        elif isinstance(value, dict):
            val_str = f"dict({len(value)} keys)"
        else:
            val_str = str(value)

        if len(val_str) > max_length:
            return val_str[:max_length] + "..."
        return val_str
    except Exception as e:
        return f"<unable to log: {type(e).__name__}>"


def log_job_event(
    logger: logging.Logger,
    level: int,
    message: str,
    job_id: str,
    **context,
) -> None:
    """
    Log a message about one job with structured context.

    Context keys are rendered into the message and attached as ``extra``
    so both plain-text and structured handlers see them.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        message: Log message
        job_id: Job the event belongs to
        **context: Additional key-value pairs
    """
    if not logger.isEnabledFor(level):
        return
    safe_context = {key: safe_log_value(val) for key, val in context.items()}
    rendered = " ".join(f"{key}={val}" for key, val in safe_context.items())
    suffix = f" ({rendered})" if rendered else ""
    logger.log(
        level,
        f"[job={job_id}] {message}{suffix}",
        extra={"job_id": job_id, **safe_context},
    )


def log_job_exception(
    logger: logging.Logger,
    message: str,
    job_id: str,
    exc: BaseException,
    **context,
) -> None:
    """
    Log an exception raised while handling a job, with traceback.

    Must be called from an ``except`` block.

    Args:
        logger: Logger instance
        message: Log message
        job_id: Job the failure belongs to
        exc: Exception instance
        **context: Additional key-value pairs
    """
    safe_context = {key: safe_log_value(val) for key, val in context.items()}
    safe_context.update({
        "error_type": type(exc).__name__,
        "error_msg": safe_log_value(str(exc)),
    })
    logger.exception(
        f"[job={job_id}] {message}",
        extra={"job_id": job_id, **safe_context},
    )
