"""
Structured logging configuration.

Provides consistent logging across the application with JSON formatting
for batch runs and a colored console renderer for the CLI.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
from structlog.types import Processor


FILE_HANDLER_NAME = "auction_assistant.file"


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure application-wide structured logging.

    Rendered events go through the standard library root logger, so the
    stderr stream and the optional log file receive the same lines.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Whether to output logs in JSON format.
        log_file: Optional file path for logging output.
    """
    numeric_level = getattr(logging, level.upper())

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=log_file is None))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )
    root = logging.getLogger()
    root.setLevel(numeric_level)
    # anthropic and httpx log every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)

    for handler in list(root.handlers):
        if handler.get_name() == FILE_HANDLER_NAME:
            root.removeHandler(handler)
            handler.close()

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.set_name(FILE_HANDLER_NAME)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(file_handler)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger for the given module name.

    Args:
        name: Logger name, typically __name__.

    Returns:
        Configured structlog logger instance.
    """
    return structlog.get_logger(name)


class LogContext:
    """Context manager binding run-scoped values (run_id, image) to every log line."""

    def __init__(self, **kwargs):
        self.context = kwargs
        self._bound = False

    def __enter__(self):
        structlog.contextvars.bind_contextvars(**self.context)
        self._bound = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._bound:
            structlog.contextvars.unbind_contextvars(*self.context.keys())
            self._bound = False
