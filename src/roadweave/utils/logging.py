"""
Logging utility functions and decorators.

This module provides helpers for timing generator runs.
"""

import functools
import logging
import time
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def log_performance(
    log_level: int = logging.INFO,
    threshold_ms: Optional[float] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator to log function execution time.

    Args:
        log_level: Logging level to use
        threshold_ms: Only log if execution time exceeds this threshold (milliseconds)

    Returns:
        Decorated function with performance logging

    Example:
        @log_performance(threshold_ms=100)
        def build_terrain():
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            func_name = f"{func.__module__}.{func.__qualname__}"
            start_time = time.perf_counter()

            try:
                return func(*args, **kwargs)
            finally:
                duration_ms = (time.perf_counter() - start_time) * 1000

                if threshold_ms is None or duration_ms >= threshold_ms:
                    logger.log(
                        log_level,
                        f"{func_name} executed in {duration_ms:.2f}ms",
                        extra={"duration_ms": duration_ms, "function": func_name},
                    )

        return wrapper

    return decorator


class PerformanceTimer:
    """
    Context manager for timing code blocks.

    Usage:
        with PerformanceTimer("lloyd_relaxation") as timer:
            sites = relax(sites)
        # Automatically logs execution time
    """

    def __init__(
        self,
        operation_name: str,
        log_level: int = logging.INFO,
        threshold_ms: Optional[float] = None,
    ):
        """
        Initialize PerformanceTimer.

        Args:
            operation_name: Name of the operation being timed
            log_level: Logging level to use
            threshold_ms: Only log if execution time exceeds this threshold
        """
        self.operation_name = operation_name
        self.log_level = log_level
        self.threshold_ms = threshold_ms
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.duration_ms: Optional[float] = None

    def __enter__(self) -> "PerformanceTimer":
        """Start the timer."""
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Stop the timer and log the result."""
        self.end_time = time.perf_counter()
        if self.start_time is not None:
            self.duration_ms = (self.end_time - self.start_time) * 1000

            if self.threshold_ms is None or self.duration_ms >= self.threshold_ms:
                logger.log(
                    self.log_level,
                    f"{self.operation_name} completed in {self.duration_ms:.2f}ms",
                    extra={
                        "duration_ms": self.duration_ms,
                        "operation": self.operation_name,
                    },
                )
