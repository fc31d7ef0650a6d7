"""Deadline for a sequence of Kubernetes operations."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta

from .exceptions import ReconcileTimeoutError

__all__ = ["Timeout"]


class Timeout:
    """Track a cumulative timeout on a series of operations.

    Each reconciliation performs several Kubernetes API calls that must all
    complete within the deadline given by the dispatcher. This class
    encapsulates that deadline and provides the remaining time for each
    individual API call.

    Parameters
    ----------
    operation
        Human-readable name of operation, for error reporting.
    timeout
        Duration of the timeout.
    """

    def __init__(self, operation: str, timeout: timedelta) -> None:
        self._operation = operation
        self._timeout = timeout
        self._start = datetime.now(tz=UTC)

    @asynccontextmanager
    async def enforce(self) -> AsyncIterator[None]:
        """Enforce the timeout and translate `TimeoutError`.

        Used to wrap a block of code in `asyncio.timeout` and catch any
        `TimeoutError`, translating it into
        `~gameroute.exceptions.ReconcileTimeoutError` with additional context.

        Raises
        ------
        ReconcileTimeoutError
            Raised if `TimeoutError` was raised inside the enclosed operation.
        """
        try:
            async with asyncio.timeout(self.left()):
                yield
        except TimeoutError as e:
            raise ReconcileTimeoutError(
                self._operation,
                started_at=self._start,
                failed_at=datetime.now(tz=UTC),
            ) from e

    def left(self) -> float:
        """Return the amount of time remaining in seconds.

        Returns
        -------
        float
            Time remaining in the timeout in seconds.

        Raises
        ------
        ReconcileTimeoutError
            Raised if the timeout has expired.
        """
        now = datetime.now(tz=UTC)
        left = (self._timeout - (now - self._start)).total_seconds()
        if left <= 0.0:
            raise ReconcileTimeoutError(
                self._operation, started_at=self._start, failed_at=now
            )
        return left
