"""
Common utilities and helper functions for the DEX reader.

This module provides centralized helpers for logging, JSON serialization,
unit-identifier formatting, and retrying transient indexer failures.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import (
    Any,
    Awaitable,
    Callable,
    Iterable,
    List,
    TypeVar,
    Union,
)

from .exceptions import TransientIndexerError

T = TypeVar("T")

POLICY_ID_HEX_LENGTH = 56


# Logging utilities
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


def get_logger(name: str, level: Union[str, int] = logging.INFO) -> logging.Logger:
    """
    Get a logger with the project's line format, attaching a stderr handler once.

    Args:
        name: Logger name (typically __name__)
        level: Level applied only if the logger has none yet

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(handler)

    return logger


logger = get_logger(__name__)


# JSON utilities
def safe_json_dump(data: Any, **kwargs) -> str:
    """
    Safely serialize data to JSON with sensible defaults.

    Args:
        data: Data to serialize
        **kwargs: Additional arguments to json.dumps

    Returns:
        JSON string
    """
    defaults = {"ensure_ascii": False, "indent": 2, "default": _json_default_handler}
    defaults.update(kwargs)
    return json.dumps(data, **defaults)


def _json_default_handler(obj: Any) -> Any:
    """Default JSON serialization handler for custom types."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    elif hasattr(obj, "to_dict"):
        return obj.to_dict()
    elif hasattr(obj, "__dict__"):
        return obj.__dict__
    else:
        return str(obj)


# Unit identifier utilities
def join_policy_id(unit: str) -> str:
    """Remove the `policy.name` separator used by the indexer query syntax."""
    return unit.replace(".", "")


def split_policy_id(unit: str) -> str:
    """Insert the `policy.name` separator into a joined unit identifier."""
    if "." in unit or len(unit) < POLICY_ID_HEX_LENGTH:
        return unit
    return f"{unit[:POLICY_ID_HEX_LENGTH]}.{unit[POLICY_ID_HEX_LENGTH:]}"


def remove_trailing_slash(url: str) -> str:
    """Strip a single trailing slash from a base URL."""
    return url[:-1] if url.endswith("/") else url


# Math utilities
def saturating_sub(value: int, amount: int) -> int:
    """Subtract without going below zero."""
    return max(0, value - amount)


# Retry utilities
def backoff_delay_ms(attempt: int, base_delay_ms: int, max_delay_ms: int) -> int:
    """Exponential backoff: base * 2^attempt (exponent capped at 5), capped overall."""
    return min(base_delay_ms * (1 << min(attempt, 5)), max_delay_ms)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    retries: int = 10,
    base_delay_ms: int = 1000,
    max_delay_ms: int = 30_000,
    description: str = "request",
) -> T:
    """
    Run an async operation, retrying transient indexer failures.

    Only TransientIndexerError is retried; anything else propagates at once.

    Args:
        operation: Zero-argument coroutine factory
        retries: Number of re-attempts after the first failure
        base_delay_ms: Initial backoff delay in milliseconds
        max_delay_ms: Upper bound for a single backoff delay
        description: Label used in log messages

    Returns:
        Result of the first successful attempt

    Raises:
        TransientIndexerError: If every attempt failed transiently
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except TransientIndexerError as e:
            if attempt >= retries:
                raise
            delay = backoff_delay_ms(attempt, base_delay_ms, max_delay_ms)
            logger.warning(
                f"[retry] {description} attempt {attempt + 1} failed ({e}), "
                f"retrying in {delay}ms"
            )
            await asyncio.sleep(delay / 1000)
            attempt += 1


# Concurrency utilities
async def gather_bounded(
    func: Callable[[Any], Awaitable[T]], items: Iterable[Any], limit: int = 5
) -> List[T]:
    """
    Apply an async function to every item with at most `limit` calls in flight.

    Results are returned in item order. If any call fails, the first failure
    is raised once every call has finished.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run_one(item: Any) -> T:
        async with semaphore:
            return await func(item)

    results = await asyncio.gather(
        *[run_one(item) for item in items], return_exceptions=True
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)
