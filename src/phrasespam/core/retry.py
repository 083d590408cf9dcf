"""Bounded retries for storage operations that hit a locked database.

Every StatStore operation runs through a RetryPolicy. A StoreBusyError is
retried after a fixed interval up to a maximum number of attempts; each
retry is logged and reported to the caller's progress handler. When the
attempts run out the caller receives StorageUnavailableError.

Usage:
    policy = RetryPolicy(max_attempts=60, interval=5.0)
    totals = await policy.run(read_totals, description="get_totals")
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from phrasespam.core.errors import StorageUnavailableError, StoreBusyError
from phrasespam.core.logging import get_logger
from phrasespam.core.progress import ProgressEvent, ProgressHandler, notify

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 60
DEFAULT_INTERVAL = 5.0  # seconds


class RetryPolicy:
    """Retry storage operations while the database reports contention.

    Attributes:
        max_attempts: Total attempts, including the first one
        interval: Seconds to wait between attempts
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        interval: float = DEFAULT_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the retry policy.

        Args:
            max_attempts: Total attempts before giving up (at least 1)
            interval: Delay between attempts in seconds
            sleep: Awaitable sleep function (replaceable in tests)
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        if interval < 0:
            raise ValueError(f"interval cannot be negative, got {interval}")
        self.max_attempts = max_attempts
        self.interval = interval
        self._sleep = sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        description: str = "storage operation",
        progress: ProgressHandler | None = None,
    ) -> T:
        """Run an operation, retrying while it raises StoreBusyError.

        Args:
            operation: Zero-argument coroutine function to run
            description: Operation name used in logs and progress events
            progress: Optional handler notified once per retry

        Returns:
            The operation's result

        Raises:
            StorageUnavailableError: If every attempt reported contention
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except StoreBusyError as e:
                if attempt >= self.max_attempts:
                    logger.error(
                        "Database still busy, giving up",
                        operation=description,
                        attempts=attempt,
                    )
                    raise StorageUnavailableError(
                        f"{description} failed: the database stayed locked through "
                        f"{attempt} attempts. Stop other processes writing to the "
                        "database or raise retry.max_attempts in the configuration.",
                        attempts=attempt,
                    ) from e

                logger.warning(
                    "Database busy, retrying",
                    operation=description,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay=self.interval,
                )
                notify(progress, ProgressEvent("retry", attempt, self.max_attempts, description))
                await self._sleep(self.interval)

        # Loop always returns or raises; max_attempts >= 1 is enforced in __init__
        raise AssertionError("unreachable")
