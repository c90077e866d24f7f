"""Translation of store failures and retry policy for idempotent operations."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import exc as sa_exc

from marron_forum.core.errors import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    sa_exc.OperationalError,
    sa_exc.TimeoutError,
    sa_exc.DisconnectionError,
)


@contextmanager
def store_guard(operation: str) -> Iterator[None]:
    """Re-raise connection and timeout failures as ``TransientStoreError``."""
    try:
        yield
    except TRANSIENT_ERRORS as err:
        logger.warning("Store operation %s failed transiently: %s", operation, err)
        raise TransientStoreError(f"Store unavailable during {operation}") from err


def retry_transient(
    func: Callable[[], T],
    *,
    attempts: int = 3,
    base_delay: float = 0.05,
    max_delay: float = 1.0,
) -> T:
    """Run ``func`` and retry it on ``TransientStoreError`` with jittered backoff.

    Only for naturally idempotent operations. ``func`` must open its own
    transaction so a retry never builds on a half-applied attempt.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except TransientStoreError:
            if attempt == attempts:
                logger.error("Retry exhausted after %d attempts", attempt)
                raise
            delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
            delay *= 0.5 + random.random()
            logger.info("Retrying transient store failure (attempt %d) in %.2fs", attempt, delay)
            time.sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
