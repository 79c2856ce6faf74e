"""
Error handling and fallback mechanisms for WalkMate
Provides graceful degradation when external services or local storage fail
"""

import asyncio
from typing import Any, Optional, Callable
from functools import wraps
from logging_config import get_logger

logger = get_logger(__name__)


class WalkMateError(Exception):
    """Base exception for WalkMate errors."""
    pass


class APIError(WalkMateError):
    """Exception for external-service errors."""
    def __init__(self, message: str, api_name: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.api_name = api_name
        self.status_code = status_code


class NetworkError(APIError):
    """Service unreachable, non-2xx response, or unusable payload."""
    pass


class QueryTimeoutError(APIError):
    """An external query exceeded its time budget."""
    def __init__(self, message: str, api_name: str):
        super().__init__(message, api_name, 408)


class NoRouteFound(WalkMateError):
    """Every routing request for a recommendation failed."""
    pass


class NoCandidateInBand(WalkMateError):
    """Routes were fetched but none lies within the target distance band."""
    pass


class PersistenceError(WalkMateError):
    """Loading or saving persisted state failed."""
    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class VisitNotFoundError(WalkMateError):
    """A merge referenced a visit id that is not in the collection."""
    pass


class RegionDatasetError(WalkMateError):
    """The region dataset could not be read or is not a FeatureCollection."""
    pass


def safe_api_call(api_name: str, required: bool = True, fallback_value: Any = None):
    """
    Decorator for safe async API calls with proper error handling.

    Args:
        api_name: Name of the API being called
        required: Whether failures should propagate as NetworkError
        fallback_value: Value returned for non-required calls that fail
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except QueryTimeoutError as e:
                logger.warning(f"Timeout in {api_name}: {e}", extra={
                    "api_name": api_name,
                    "error_type": "timeout",
                })
                if required:
                    raise
                return fallback_value
            except APIError as e:
                logger.warning(f"API error in {api_name}: {e}", extra={
                    "api_name": api_name,
                    "error_type": "network",
                })
                if required:
                    raise
                return fallback_value
            except Exception as e:
                logger.error(f"Unexpected error in {api_name}: {e}", extra={
                    "api_name": api_name,
                    "error_type": "unexpected",
                })
                if required:
                    raise NetworkError(f"Unexpected error in {api_name}: {e}", api_name) from e
                return fallback_value
        return wrapper
    return decorator


def handle_api_timeout(timeout_seconds: float = 30):
    """
    Decorator to bound an async API call with asyncio.wait_for.

    Args:
        timeout_seconds: Timeout in seconds
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"Function {func.__name__} timed out after {timeout_seconds}s")
                raise QueryTimeoutError(
                    f"Request timed out after {timeout_seconds} seconds", func.__name__
                )
        return wrapper
    return decorator
