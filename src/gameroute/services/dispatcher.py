"""Dispatch of game server changes to the reconciler."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import sentry_sdk
from aiojobs import Scheduler
from safir.slack.blockkit import SlackException
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import BoundLogger

from ..constants import (
    DISPATCH_BACKOFF_BASE,
    DISPATCH_BACKOFF_MAX,
    KUBERNETES_REQUEST_TIMEOUT,
    WATCH_RESTART_DELAY,
)
from ..models.domain.gameserver import GameServerIdentity
from ..models.domain.reconcile import ReconcileResult
from ..storage.kubernetes.custom import GameServerStorage
from ..timeout import Timeout
from .reconciler import GameServerReconciler

__all__ = [
    "GameServerDispatcher",
    "WorkQueue",
    "backoff_delay",
]


def backoff_delay(
    failures: int, base: timedelta, maximum: timedelta
) -> timedelta:
    """Compute the delay before the next retry of a failing operation.

    Parameters
    ----------
    failures
        Number of consecutive failures before the one just seen.
    base
        Delay after the first failure.
    maximum
        Upper limit on the delay.

    Returns
    -------
    datetime.timedelta
        Base delay doubled for each earlier failure, capped at the maximum.
    """
    seconds = base.total_seconds() * 2 ** min(failures, 32)
    return min(timedelta(seconds=seconds), maximum)


class WorkQueue:
    """Queue of game servers waiting to be reconciled.

    A game server is in the queue at most once, no matter how often it is
    added, and is never handed to two workers at the same time. A game server
    added while a worker is reconciling it is queued again once the worker
    calls `done`, so changes made during a reconciliation are never lost.

    The queue also tracks consecutive failures for each game server so that
    retries back off exponentially.

    Parameters
    ----------
    backoff_base
        Delay before the first retry of a failed game server.
    backoff_max
        Upper limit on the retry delay.
    """

    def __init__(
        self,
        *,
        backoff_base: timedelta = DISPATCH_BACKOFF_BASE,
        backoff_max: timedelta = DISPATCH_BACKOFF_MAX,
    ) -> None:
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._queue: asyncio.Queue[GameServerIdentity] = asyncio.Queue()
        self._queued: set[GameServerIdentity] = set()
        self._processing: set[GameServerIdentity] = set()
        self._dirty: set[GameServerIdentity] = set()
        self._delayed: dict[GameServerIdentity, asyncio.TimerHandle] = {}
        self._failures: dict[GameServerIdentity, int] = {}

    def __len__(self) -> int:
        return len(self._queued)

    def add(self, identity: GameServerIdentity) -> None:
        """Queue a game server for reconciliation.

        Parameters
        ----------
        identity
            Game server to reconcile.
        """
        if identity in self._processing:
            self._dirty.add(identity)
        elif identity not in self._queued:
            self._queued.add(identity)
            self._queue.put_nowait(identity)

    def add_after(
        self, identity: GameServerIdentity, delay: timedelta
    ) -> None:
        """Queue a game server for reconciliation after a delay.

        If the game server is already waiting on a delay, whichever delay
        ends first wins.

        Parameters
        ----------
        identity
            Game server to reconcile.
        delay
            How long to wait before adding it to the queue.
        """
        if delay <= timedelta(seconds=0):
            self.add(identity)
            return
        loop = asyncio.get_running_loop()
        when = loop.time() + delay.total_seconds()
        if pending := self._delayed.get(identity):
            if pending.when() <= when:
                return
            pending.cancel()
        handle = loop.call_at(when, self._add_delayed, identity)
        self._delayed[identity] = handle

    def add_with_backoff(self, identity: GameServerIdentity) -> timedelta:
        """Queue a failed game server for a retry after a backoff delay.

        Parameters
        ----------
        identity
            Game server whose reconciliation failed.

        Returns
        -------
        datetime.timedelta
            Delay before the retry.
        """
        failures = self._failures.get(identity, 0)
        self._failures[identity] = failures + 1
        delay = backoff_delay(failures, self._backoff_base, self._backoff_max)
        self.add_after(identity, delay)
        return delay

    def close(self) -> None:
        """Cancel all pending delayed additions."""
        for handle in self._delayed.values():
            handle.cancel()
        self._delayed.clear()

    def done(self, identity: GameServerIdentity) -> None:
        """Mark the reconciliation of a game server as finished.

        Parameters
        ----------
        identity
            Game server returned by `get`.
        """
        self._processing.discard(identity)
        if identity in self._dirty:
            self._dirty.discard(identity)
            self.add(identity)

    def forget(self, identity: GameServerIdentity) -> None:
        """Reset the failure count of a game server.

        Parameters
        ----------
        identity
            Game server that was reconciled successfully.
        """
        self._failures.pop(identity, None)

    async def get(self) -> GameServerIdentity:
        """Wait for the next game server to reconcile.

        The caller must call `done` when finished with the game server.

        Returns
        -------
        GameServerIdentity
            Game server to reconcile.
        """
        identity = await self._queue.get()
        self._queued.discard(identity)
        self._processing.add(identity)
        return identity

    def _add_delayed(self, identity: GameServerIdentity) -> None:
        del self._delayed[identity]
        self.add(identity)


class GameServerDispatcher:
    """Feed game server changes to the reconciler.

    While the controller is running, a watch on ``GameServer`` objects adds
    every existing game server and every added or modified game server to a
    work queue. A pool of worker tasks takes game servers off the queue and
    reconciles them, queuing them again after the delay the reconciler asks
    for, or after a backoff delay if the reconciliation failed.

    Parameters
    ----------
    reconciler
        Game server reconciler.
    gameserver_storage
        Storage for ``GameServer`` objects.
    namespace
        Namespace to watch, or `None` to watch every namespace.
    workers
        Number of worker tasks.
    reconcile_timeout
        Deadline for a single reconciliation.
    slack_client
        Optional Slack webhook client for alerts.
    logger
        Logger to use.
    watch_restart_delay
        Pause before restarting the watch after its first consecutive
        failure, doubled for each further failure.
    """

    def __init__(
        self,
        *,
        reconciler: GameServerReconciler,
        gameserver_storage: GameServerStorage,
        namespace: str | None,
        workers: int,
        reconcile_timeout: timedelta,
        slack_client: SlackWebhookClient | None,
        logger: BoundLogger,
        watch_restart_delay: timedelta = WATCH_RESTART_DELAY,
    ) -> None:
        self._reconciler = reconciler
        self._gameservers = gameserver_storage
        self._namespace = namespace
        self._workers = workers
        self._reconcile_timeout = reconcile_timeout
        self._slack = slack_client
        self._logger = logger
        self._watch_restart_delay = watch_restart_delay

        self._queue = WorkQueue()
        self._scheduler: Scheduler | None = None

    @property
    def queue(self) -> WorkQueue:
        """Queue of game servers waiting to be reconciled."""
        return self._queue

    async def process(
        self, identity: GameServerIdentity
    ) -> ReconcileResult | None:
        """Reconcile one game server and schedule any follow-up.

        Parameters
        ----------
        identity
            Game server to reconcile.

        Returns
        -------
        ReconcileResult or None
            Result of the reconciliation, or `None` if it failed and a retry
            was scheduled.
        """
        timeout = Timeout("Reconciling game server", self._reconcile_timeout)
        try:
            result = await self._reconciler.reconcile(identity, timeout)
        except Exception as e:
            delay = self._queue.add_with_backoff(identity)
            self._logger.exception(
                "Failed to reconcile game server",
                namespace=identity.namespace,
                name=identity.name,
                retry_delay=delay.total_seconds(),
            )
            await self._maybe_post_exception(e)
            return None
        self._queue.forget(identity)
        if result.requeue_after:
            self._queue.add_after(identity, result.requeue_after)
        return result

    async def start(self) -> None:
        """Start watching and reconciling game servers."""
        if self._scheduler:
            msg = "Dispatcher already running, cannot start"
            self._logger.warning(msg)
            return
        self._scheduler = Scheduler()
        self._logger.info(
            "Starting game server dispatcher",
            namespace=self._namespace,
            workers=self._workers,
        )
        await self._scheduler.spawn(self._watch())
        for _ in range(self._workers):
            await self._scheduler.spawn(self._work())

    async def stop(self) -> None:
        """Stop watching and reconciling game servers."""
        if not self._scheduler:
            msg = "Dispatcher was already stopped"
            self._logger.warning(msg)
            return
        self._logger.info("Stopping game server dispatcher")
        await self._scheduler.close()
        self._scheduler = None
        self._queue.close()

    async def _maybe_post_exception(self, exc: Exception) -> None:
        """Post an exception to Sentry and, if configured, to Slack."""
        sentry_sdk.capture_exception(exc)
        if not self._slack:
            return
        if isinstance(exc, SlackException):
            await self._slack.post_exception(exc)
        else:
            await self._slack.post_uncaught_exception(exc)

    async def _watch(self) -> None:
        """Add changed game servers to the queue until cancelled.

        If the watch fails, it is restarted after a pause, which also lists
        and queues every game server again in case changes were missed. The
        pause doubles with each consecutive failure and is reset once a game
        server is seen again.
        """
        failures = 0
        while True:
            timeout = Timeout(
                "Listing game servers", KUBERNETES_REQUEST_TIMEOUT
            )
            try:
                async for identity in self._gameservers.watch_identities(
                    self._namespace, timeout
                ):
                    failures = 0
                    self._queue.add(identity)
            except Exception as e:
                delay = backoff_delay(
                    failures, self._watch_restart_delay, DISPATCH_BACKOFF_MAX
                )
                failures += 1
                self._logger.exception(
                    "Error watching game servers",
                    retry_delay=delay.total_seconds(),
                )
                await self._maybe_post_exception(e)
            else:
                delay = self._watch_restart_delay
            await asyncio.sleep(delay.total_seconds())

    async def _work(self) -> None:
        """Reconcile game servers from the queue until cancelled."""
        while True:
            identity = await self._queue.get()
            try:
                await self.process(identity)
            finally:
                self._queue.done(identity)
