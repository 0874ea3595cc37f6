"""Logging configuration with structured JSON output.

Modules log through the standard library (``logging.getLogger(__name__)``).
This module decides where those records go: a JSON or text formatter on the
root logger, or loguru via an intercepting handler.
"""

import inspect
import json
import logging
import sys
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from loguru import logger as loguru_logger

# Standard LogRecord attributes, excluded from the "extra" payload
_STANDARD_ATTRS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "taskName",
    "exc_info",
    "exc_text",
    "stack_info",
}


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured log records.

    Each record becomes one JSON object with timestamp, level, logger and
    message keys, plus an ``extra`` object for any context passed through
    ``extra=``.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, ensure_ascii=False, default=str)


class InterceptHandler(logging.Handler):
    """Forward standard logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: Union[str, int] = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message.
        frame, depth = inspect.currentframe(), 0
        while frame:
            filename = frame.f_code.co_filename
            is_logging = filename == logging.__file__
            is_frozen = "importlib" in filename and "_bootstrap" in filename
            if depth > 0 and not (is_logging or is_frozen):
                break
            frame = frame.f_back
            depth += 1

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_logging(
    level: Union[str, int] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    json_format: bool = True,
    console_output: bool = True,
    use_loguru: bool = False,
) -> None:
    """Configure logging for lesson generation.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional file path for log output (default: None = console only)
        json_format: If True, emit JSON records; if False, plain text (default: True)
        console_output: If True, log to stderr (default: True)
        use_loguru: If True, route all records through loguru sinks instead of
            standard logging handlers

    Example:
        >>> configure_logging(level="DEBUG", log_file="lesson.log", json_format=False)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if use_loguru:
        loguru_logger.remove()
        level_name = logging.getLevelName(level) if isinstance(level, int) else level
        if console_output:
            loguru_logger.add(
                sys.stderr, level=level_name, backtrace=True, diagnose=False, serialize=json_format
            )
        if log_file:
            loguru_logger.add(str(log_file), level=level_name, serialize=json_format)
        root_logger.addHandler(InterceptHandler())
        logging.info(f"Logging configured via loguru: level={level_name}, json_format={json_format}")
        return

    if json_format:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logging.info(f"Logging configured: level={logging.getLevelName(level)}, json_format={json_format}")


@contextmanager
def stage_logger(stage_name: str, **context):
    """Context manager for logging one generation stage.

    Logs entry and exit of the stage with timing information; failures are
    logged and re-raised.

    Args:
        stage_name: Name of the stage (e.g. "shared_context", "section.grammar")
        **context: Additional context fields to include in logs

    Yields:
        Logger instance for the stage

    Example:
        >>> with stage_logger("section.warmup", level="B1") as log:
        ...     log.info("Requesting warm-up questions")
    """
    logger = logging.getLogger(f"lessonforge.{stage_name}")

    start_time = datetime.now(UTC)
    logger.info(
        f"Starting stage: {stage_name}",
        extra={"stage": stage_name, "status": "started", **context},
    )

    try:
        yield logger

        duration_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
        logger.info(
            f"Completed stage: {stage_name}",
            extra={
                "stage": stage_name,
                "status": "completed",
                "duration_ms": round(duration_ms, 2),
                **context,
            },
        )

    except Exception as e:
        duration_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
        logger.error(
            f"Failed stage: {stage_name}",
            extra={
                "stage": stage_name,
                "status": "failed",
                "duration_ms": round(duration_ms, 2),
                "error": str(e)[:200],
                **context,
            },
            exc_info=True,
        )
        raise
