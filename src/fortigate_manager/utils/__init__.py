"""Utility modules for retries, logging and auditing."""
from .connection import OperationResult, with_retry
from .logging_config import (
    setup_logging,
    timed,
    timed_section,
    perf_logger,
)

__all__ = [
    "OperationResult",
    "with_retry",
    "setup_logging",
    "timed",
    "timed_section",
    "perf_logger",
]
