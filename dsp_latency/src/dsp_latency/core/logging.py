"""Structured logging configuration for the DSP latency test."""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict

import psutil
import structlog
from structlog.stdlib import LoggerFactory


_run_context: Dict[str, Any] = {}


def configure_structlog(
    log_level: str = "INFO",
    json_format: bool = False,
    include_timestamp: bool = True,
    include_process_metrics: bool = False,
) -> None:
    """Configure structured logging for the latency harness."""

    # Log records go to stderr so the textual report owns stdout
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
        force=True,
    )

    processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    processors.append(add_run_context)

    if include_process_metrics:
        processors.append(add_process_metrics)

    processors.extend([
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ])

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def add_run_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add the active run context (rate, duration, endpoint) to log entries."""
    for key, value in _run_context.items():
        event_dict.setdefault(key, value)
    return event_dict


def add_process_metrics(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add resident memory and CPU usage of the harness process."""
    process = psutil.Process()
    event_dict["memory_mb"] = round(process.memory_info().rss / 1024 / 1024, 2)
    event_dict["cpu_percent"] = process.cpu_percent()
    return event_dict


class RunContext:
    """Context manager binding run-wide fields to every log entry."""

    def __init__(self, **context: Any):
        self.context = context
        self._original_context: Dict[str, Any] = {}

    def __enter__(self) -> RunContext:
        self._original_context = dict(_run_context)
        _run_context.update(self.context)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        _run_context.clear()
        _run_context.update(self._original_context)


def log_run_summary(
    logger: structlog.stdlib.BoundLogger,
    sent: int,
    received: int,
    duration_seconds: float,
    **kwargs: Any,
) -> None:
    """Log the end-of-run counters with structured data."""
    log_data = {
        "sent": sent,
        "received": received,
        "duration_s": round(duration_seconds, 3),
    }
    log_data.update(kwargs)

    # Remove None values
    log_data = {k: v for k, v in log_data.items() if v is not None}

    logger.info("Run finished", **log_data)


# Convenience functions for getting loggers
def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger."""
    return structlog.get_logger(name)


def get_component_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a harness component logger."""
    return structlog.get_logger(f"dsp_latency.{component}")


def get_sender_logger() -> structlog.stdlib.BoundLogger:
    """Get the Sender component logger."""
    return get_component_logger("sender")


def get_receiver_logger() -> structlog.stdlib.BoundLogger:
    """Get the Receiver component logger."""
    return get_component_logger("receiver")
