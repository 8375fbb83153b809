# backend/modules/kitchen/utils/store_retry.py

import asyncio
import inspect
import logging
import random
from typing import Callable, TypeVar

from ..exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_on_store_unavailable(
    func: Callable[..., T],
    *args,
    max_retries: int = 3,
    initial_delay: float = 0.1,
    max_delay: float = 2.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    **kwargs,
) -> T:
    """
    Retry a store call on StoreUnavailableError with exponential backoff

    Used by background sweeps only. Interactive requests surface the error
    immediately instead.

    Args:
        func: Store call, sync or async
        *args: Positional arguments for the call
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        backoff_factor: Multiplier for exponential backoff
        jitter: Add random jitter to prevent thundering herd
        **kwargs: Keyword arguments for the call

    Returns:
        The result of the call

    Raises:
        StoreUnavailableError: once all retries are exhausted
    """
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result
        except StoreUnavailableError as e:
            if attempt == max_retries:
                raise

            actual_delay = min(delay, max_delay)
            if jitter:
                # Add random jitter (0-25% of delay)
                actual_delay *= 1 + random.random() * 0.25

            logger.warning(
                f"Ticket store unavailable on attempt {attempt + 1}/{max_retries + 1}. "
                f"Retrying in {actual_delay:.2f}s. Error: {e.message}"
            )

            await asyncio.sleep(actual_delay)
            delay *= backoff_factor
