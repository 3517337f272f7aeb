"""Logging configuration using loguru."""

import logging
import sys
import time
from contextlib import contextmanager
from typing import Literal

from loguru import logger


# Remove default handler
logger.remove()

GREEN = "\033[32m"
CYAN = "\033[36m"
YELLOW = "\033[33m"
RED = "\033[31m"
BOLD = "\033[1m"
RESET = "\033[0m"

_LEVEL_DISPLAY = {
    "DEBUG": ("DEBUG", CYAN),
    "INFO": ("INFO ", RESET),
    "WARNING": ("WARN ", YELLOW),
    "ERROR": ("ERROR", RED),
    "CRITICAL": ("CRIT ", f"{RED}{BOLD}"),
}


def _abbreviate_module_name(name: str) -> str:
    """Abbreviate module name for cleaner console output.

    Example: aether.services.attachment_pipeline -> a.s.attachment_pipeline
    """
    parts = name.split(".")
    if len(parts) <= 1:
        return name
    return ".".join([p[0] for p in parts[:-1]] + [parts[-1]])


def _format_console_record(record) -> str:
    """Render one record as a compact colored line with its bound context."""
    timestamp = record["time"].strftime("%H:%M:%S.%f")[:-3]
    module_name = _abbreviate_module_name(record["extra"].get("name", record["name"]))
    message = record["message"]

    context = {k: v for k, v in record["extra"].items() if k != "name"}
    extra_str = ""
    if context:
        extra_str = " | " + ", ".join(f"{k}={v!r}" for k, v in context.items())

    level_name = record["level"].name
    level_display, level_color = _LEVEL_DISPLAY.get(
        level_name, (level_name[:5].ljust(5), RESET)
    )
    # Failed steps stand out even when logged at warning level
    if message.endswith("_failed"):
        level_color = RED

    return (
        f"{GREEN}{timestamp}{RESET} | "
        f"{level_color}{level_display}{RESET} | "
        f"{CYAN}{module_name}{RESET} | "
        f"{level_color}{message}{RESET}"
        f"{YELLOW}{extra_str}{RESET}\n"
    )


def setup_logging(
    log_level: str = "INFO",
    log_format: Literal["json", "console"] = "console",
) -> None:
    """Configure logging for the application using loguru.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format - "json" for production, "console" for development
    """
    logger.remove()

    if log_format == "json":
        logger.add(
            sys.stdout,
            format="{message}",
            level=log_level.upper(),
            serialize=True,
            backtrace=True,
            diagnose=False,
        )
    else:
        logger.add(
            lambda msg: sys.stdout.write(_format_console_record(msg.record)),
            level=log_level.upper(),
            backtrace=True,
            diagnose=True,
        )

    # Intercept standard library logging and route to loguru
    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                level = logger.level(record.levelname).name
            except ValueError:
                level = record.levelno

            frame, depth = sys._getframe(6), 6
            while frame and frame.f_code.co_filename == logging.__file__:
                frame = frame.f_back
                depth += 1

            logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # Reduce noise from third-party libraries
    for noisy in (
        "httpx",
        "httpcore",
        "uvicorn.access",
        "langchain",
        "langchain_core",
        "google_genai",
        "google.genai",
        "sqlalchemy.engine",
        "asyncpg",
        "aiosqlite",
        "botocore",
        "boto3",
        "urllib3",
        "pypdf",
    ):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").propagate = True


def get_logger(name: str | None = None):
    """Get a logger instance.

    Args:
        name: Logger name, typically __name__ of the module

    Returns:
        A loguru logger instance bound with the module name
    """
    if name:
        return logger.bind(name=name)
    return logger


@contextmanager
def log_timing(logger_instance, event_name: str, **context):
    """Context manager that logs start/complete/fail with duration_ms.

    Usage:
        with log_timing(logger, "pdf_extraction", filename=name):
            text = parse(data)
    """
    start = time.perf_counter()
    logger_instance.debug(f"{event_name}_started", **context)
    try:
        yield
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger_instance.info(f"{event_name}_completed", duration_ms=duration_ms, **context)
    except Exception as e:
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger_instance.warning(f"{event_name}_failed", duration_ms=duration_ms, error=str(e), **context)
        raise
