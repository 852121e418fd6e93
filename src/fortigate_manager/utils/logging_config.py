"""Logging configuration for the FortiGate manager service.

Provides configurable logging with:
- File-based logging with rotation
- Console output for real-time debugging
- Performance timing decorators for appliance round-trips

Environment Variables:
    FORTIMGR_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    FORTIMGR_LOG_FILE: Path to log file (default: ~/.fortigate-manager/fortigate-manager.log)
    FORTIMGR_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    FORTIMGR_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from fortigate_manager.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("connect")
    async def connect(self):
        ...

    async with timed_section("save_object", target="fw01", name="ELS-printer"):
        ...
"""
import asyncio
import functools
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Optional

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("fortigate_manager.perf")

MAIN_FORMAT = "%(asctime)s.%(msecs)03d | %(name)-32s | %(levelname)-7s | %(message)s"
PERF_FORMAT = "%(asctime)s.%(msecs)03d | PERF | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("FORTIMGR_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".fortigate-manager" / "fortigate-manager.log"
    path_str = os.environ.get("FORTIMGR_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging() -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (respects FORTIMGR_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance logger for timing metrics in its own file
    """
    log_level = get_log_level()
    log_file = get_log_file()
    max_size_mb = int(os.environ.get("FORTIMGR_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("FORTIMGR_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    main_format = logging.Formatter(MAIN_FORMAT, datefmt=DATE_FORMAT)
    perf_format = logging.Formatter(PERF_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)

    perf_log_file = log_file.parent / "fortigate-manager-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)

    package_logger = logging.getLogger("fortigate_manager")
    package_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    package_logger.handlers.clear()
    package_logger.addHandler(console_handler)
    package_logger.addHandler(file_handler)

    # Perf records go to their own file only
    perf_logger.setLevel(logging.DEBUG)
    perf_logger.handlers.clear()
    perf_logger.addHandler(perf_handler)
    perf_logger.propagate = False

    package_logger.info(f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}")
    package_logger.info(f"Performance logging to: {perf_log_file}")


def _format_perf(operation: str, target: Optional[str], elapsed_ms: float, outcome: str, extra: str = "") -> str:
    msg = f"{operation:20s} | {target or 'N/A':15s} | {elapsed_ms:8.2f}ms | {outcome}"
    if extra:
        msg += f" | {extra}"
    return msg


def timed(operation: str, target: Optional[str] = None):
    """Decorator to log execution time of an async method.

    Args:
        operation: Name of the operation (e.g., "connect", "list_objects")
        target: Optional target label (inferred from self.host if not provided)

    Usage:
        @timed("connect")
        async def connect(self):
            ...
    """
    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError("timed() only wraps coroutine functions")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            label = target
            if label is None and args and hasattr(args[0], "host"):
                label = args[0].host

            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(_format_perf(operation, label, elapsed, f"FAIL: {e}"))
                raise
            elapsed = (time.perf_counter() - start) * 1000
            perf_logger.info(_format_perf(operation, label, elapsed, "OK"))
            return result

        return wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, target: Optional[str] = None, **extra):
    """Async context manager for timing code sections.

    Usage:
        async with timed_section("delete_object", target="fw01", name="ELS-printer"):
            await session.execute_command(...)
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        perf_logger.warning(_format_perf(operation, target, elapsed, f"FAIL: {e}", extra_str))
        raise
    elapsed = (time.perf_counter() - start) * 1000
    perf_logger.info(_format_perf(operation, target, elapsed, "OK", extra_str))
