"""HTTP client utilities and helpers."""

from __future__ import annotations

import ssl
from asyncio import sleep
from contextlib import asynccontextmanager
from functools import wraps

from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

import httpx

from src.helpers.constants import (
    DEFAULT_TIMEOUT,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
)
from src.helpers.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable


logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def _describe_failure(error: Exception) -> str:
    """Short description of a failed attempt for retry logs."""
    if isinstance(error, httpx.HTTPStatusError):
        return f"unexpected status {error.response.status_code}"
    if isinstance(error, httpx.HTTPError):
        return f"HTTP error: {error}"
    return f"error: {error}"


def retry_async(
    max_retries: int = MAX_RETRIES,
    delay: float = RETRY_BASE_DELAY,
    max_delay: float = RETRY_MAX_DELAY,
    *,
    backoff: bool = False,
    log_errors: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator to retry async functions with a fixed or exponential delay.

    Every exception counts as a failed attempt; the last one is re-raised
    once ``max_retries`` attempts have failed.

    Args:
        max_retries: Maximum number of attempts (default: 5)
        delay: Delay between attempts in seconds (default: 1.0)
        max_delay: Cap of the delay when ``backoff`` is enabled (default: 60.0)
        backoff: Double the delay after every failed attempt
        log_errors: Whether to log retry attempts (default: True)

    Example:
        ```python
        from src.helpers.http import retry_async

        @retry_async(max_retries=3, delay=5.0)
        async def post_alert(client: httpx.AsyncClient, url: str) -> None:
            response = await client.post(url, json={"text": "alert"})
            response.raise_for_status()

        # Will try 3 times, waiting 5s between attempts
        ```
    """
    if max_retries < 1:
        msg = "max_retries must be at least 1"
        raise ValueError(msg)

    def wait_before(attempt: int) -> float:
        if not backoff:
            return delay
        return min(delay * (2**attempt), max_delay)

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    attempt += 1
                    if attempt >= max_retries:
                        if log_errors:
                            logger.error("%s failed after %d attempts", func.__name__, max_retries)
                        raise
                    if log_errors:
                        logger.warning(
                            "%s %s (attempt %d/%d)",
                            func.__name__,
                            _describe_failure(e),
                            attempt,
                            max_retries,
                        )
                await sleep(wait_before(attempt - 1))

        return wrapper

    return decorator


def create_tls_context(ca_path: str, cert_path: str, key_path: str) -> ssl.SSLContext:
    """Create an SSL context for mutual TLS.

    Args:
        ca_path: CA bundle used to verify the server
        cert_path: Client certificate
        key_path: Client private key

    Returns:
        SSL context to pass as ``verify`` to httpx
    """
    context = ssl.create_default_context(cafile=ca_path)
    context.load_cert_chain(certfile=cert_path, keyfile=key_path)
    return context


def create_http_client(
    timeout: float = DEFAULT_TIMEOUT, **kwargs: Any
) -> httpx.AsyncClient:
    """Create a configured httpx AsyncClient.

    Args:
        timeout: Default timeout in seconds (default: DEFAULT_TIMEOUT)
        **kwargs: Additional httpx.AsyncClient kwargs

    Returns:
        Configured AsyncClient instance

    Example:
        ```python
        from src.helpers.http import create_http_client

        async with create_http_client(base_url="http://10.0.0.2:2375") as client:
            response = await client.get("/containers/json")
        ```
    """
    return httpx.AsyncClient(timeout=timeout, **kwargs)


@asynccontextmanager
async def log_and_suppress_errors(
    operation_name: str,
    *,
    log_level: str = "warning",
    suppress: bool = True,
) -> AsyncIterator[None]:
    """Context manager to log and optionally suppress errors.

    Args:
        operation_name: Description of the operation for logging
        log_level: Logging level ("debug", "info", "warning", "error")
        suppress: If True, suppress exceptions; if False, re-raise after logging

    Yields:
        None

    Example:
        ```python
        from src.helpers.http import log_and_suppress_errors

        async with log_and_suppress_errors("close docker client"):
            await client.aclose()
        ```
    """
    try:
        yield
    except Exception as e:
        log_method = getattr(logger, log_level, logger.warning)
        log_method("%s failed: %s", operation_name, e)

        if not suppress:
            raise


__all__ = [
    "create_http_client",
    "create_tls_context",
    "log_and_suppress_errors",
    "retry_async",
]
