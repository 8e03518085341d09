"""
Resilience Patterns for Parallel Batch File Compressor
======================================================

Error taxonomy for compression jobs and the retry mechanism used when
opening streams that may fail transiently.
"""

import time
import random
import logging
import traceback
from dataclasses import dataclass
from functools import wraps
from pathlib import Path
from typing import Callable, Any, Optional, Dict, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class RetryConfig:
    """Configuration for retry behavior"""
    max_attempts: int = 3
    initial_delay: float = 0.1
    max_delay: float = 5.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: tuple = (InterruptedError, BlockingIOError, TimeoutError)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay with exponential backoff and optional jitter"""
        delay = min(self.initial_delay * (self.exponential_base ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay *= (0.5 + random.random())
        return delay


class CompressionError(Exception):
    """Base class for errors raised while running a compression job"""

    error_code = "compression_error"

    def __init__(self, message: str, cause: Optional[Exception] = None,
                 path: Optional[Union[str, Path]] = None,
                 details: Optional[Dict[str, Any]] = None):
        """
        Initialize a compression error.

        Args:
            message: Error description
            cause: Original exception that caused this error
            path: Stream identifier the error relates to
            details: Additional error context
        """
        super().__init__(message)
        self.cause = cause
        self.path = str(path) if path is not None else None
        self.details = details or {}
        self.timestamp = time.time()
        self.traceback = traceback.format_exc() if cause else None

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.path:
            base_msg = f"{base_msg}: {self.path}"
        if self.cause:
            return f"{base_msg} (caused by {type(self.cause).__name__}: {self.cause})"
        return base_msg

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(message={super().__str__()!r}, "
                f"cause={self.cause!r}, path={self.path!r}, "
                f"details={self.details!r})")

    def log_context(self) -> Dict[str, Any]:
        """Get error context for structured logging"""
        return {
            'error_type': type(self).__name__,
            'error_code': self.error_code,
            'message': str(self),
            'path': self.path,
            'timestamp': self.timestamp,
            'details': self.details,
            'cause': str(self.cause) if self.cause else None
        }


class StreamOpenError(CompressionError):
    """Source stream unreadable or destination stream unwritable"""
    error_code = "stream_open"


class StreamIOError(CompressionError):
    """Read or write failure after both streams were opened"""
    error_code = "stream_io"


class CodecError(CompressionError):
    """The underlying transform rejected the data or failed internally"""
    error_code = "codec"


class JobCancelledError(CompressionError):
    """Job aborted because cancellation was requested"""
    error_code = "cancelled"


class ConfigError(CompressionError, ValueError):
    """Invalid configuration detected before dispatch"""
    error_code = "config"


def with_retry(config: Optional[RetryConfig] = None):
    """Decorator for adding retry logic to functions"""
    if config is None:
        config = RetryConfig()

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            last_exception = None

            for attempt in range(1, config.max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except config.retryable_exceptions as e:
                    last_exception = e
                    if attempt == config.max_attempts:
                        logger.error(f"Failed after {config.max_attempts} attempts: {func.__name__}")
                        raise

                    delay = config.calculate_delay(attempt)
                    logger.warning(f"Attempt {attempt} failed: {e}. Retrying in {delay:.2f}s...")
                    time.sleep(delay)

            raise last_exception

        return wrapper
    return decorator
