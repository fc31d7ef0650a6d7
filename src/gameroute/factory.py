"""Component factory and global and per-request context management."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass
from typing import Self

import structlog
from kubernetes_asyncio.client.api_client import ApiClient
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import BoundLogger

from .config import Config
from .services.builder.route import IngressRouteBuilder
from .services.builder.service import ServiceBuilder
from .services.dispatcher import GameServerDispatcher
from .services.reconciler import GameServerReconciler
from .storage.kubernetes.creator import EndpointsStorage, ServiceStorage
from .storage.kubernetes.custom import GameServerStorage, IngressRouteStorage

__all__ = ["Factory", "ProcessContext"]


@dataclass(frozen=True, slots=True)
class ProcessContext:
    """Per-process global application state.

    This object holds all of the per-process singletons and is managed by
    `~gameroute.dependencies.context.ContextDependency`. It is used by the
    `Factory` class as a source of dependencies to inject into created service
    and storage objects.
    """

    config: Config
    """Controller configuration."""

    kubernetes_client: ApiClient
    """Shared Kubernetes client."""

    dispatcher: GameServerDispatcher
    """Watches game servers and reconciles them in the background."""

    @classmethod
    async def from_config(cls, config: Config) -> Self:
        """Create a new process context from the controller configuration.

        Parameters
        ----------
        config
            Controller configuration.

        Returns
        -------
        ProcessContext
            Shared context for a controller process.
        """
        kubernetes_client = ApiClient()

        # This logger is used only by process-global singletons. Everything
        # else will use a per-request logger that includes more context about
        # the request.
        logger = structlog.get_logger(__name__)

        slack_client = None
        if config.slack_webhook:
            slack_client = SlackWebhookClient(
                config.slack_webhook, config.name, logger
            )

        gameserver_storage = GameServerStorage(kubernetes_client, logger)
        reconciler = GameServerReconciler(
            service_builder=ServiceBuilder(logger),
            route_builder=IngressRouteBuilder(config.routing),
            gameserver_storage=gameserver_storage,
            service_storage=ServiceStorage(kubernetes_client, logger),
            endpoints_storage=EndpointsStorage(kubernetes_client, logger),
            route_storage=IngressRouteStorage(kubernetes_client, logger),
            logger=logger,
        )
        return cls(
            config=config,
            kubernetes_client=kubernetes_client,
            dispatcher=GameServerDispatcher(
                reconciler=reconciler,
                gameserver_storage=gameserver_storage,
                namespace=config.watch_namespace,
                workers=config.workers,
                reconcile_timeout=config.reconcile_timeout,
                slack_client=slack_client,
                logger=logger,
            ),
        )

    async def aclose(self) -> None:
        """Free allocated resources."""
        await self.kubernetes_client.close()

    async def start(self) -> None:
        """Start the background tasks running."""
        await self.dispatcher.start()

    async def stop(self) -> None:
        """Clean up a process context.

        Called during shutdown, or before recreating the process context using
        a different configuration.
        """
        await self.dispatcher.stop()


class Factory:
    """Build controller components.

    Uses the contents of a `ProcessContext` to construct the components of the
    application on demand.

    Parameters
    ----------
    context
        Shared process context.
    logger
        Logger to use for messages.
    """

    @classmethod
    @asynccontextmanager
    async def standalone(cls, config: Config) -> AsyncIterator[Self]:
        """Async context manager for controller components.

        Intended for background jobs or the test suite.

        Parameters
        ----------
        config
            Controller configuration

        Yields
        ------
        Factory
            Newly-created factory. Must be used as a context manager.
        """
        logger = structlog.get_logger(__name__)
        context = await ProcessContext.from_config(config)
        factory = cls(context, logger)
        async with aclosing(factory):
            yield factory

    def __init__(self, context: ProcessContext, logger: BoundLogger) -> None:
        self._context = context
        self._logger = logger
        self._background_services_started = False

    @property
    def dispatcher(self) -> GameServerDispatcher:
        """Global game server dispatcher, from the `ProcessContext`.

        Only used by tests; handlers reconcile nothing themselves.
        """
        return self._context.dispatcher

    async def aclose(self) -> None:
        """Shut down the factory.

        After this method is called, the factory object is no longer valid and
        must not be used.
        """
        if self._background_services_started:
            await self._context.stop()
        await self._context.aclose()

    def create_gameserver_storage(self) -> GameServerStorage:
        """Create Kubernetes storage object for game servers.

        Returns
        -------
        GameServerStorage
            Newly-created game server storage.
        """
        return GameServerStorage(
            self._context.kubernetes_client, self._logger
        )

    def create_reconciler(self) -> GameServerReconciler:
        """Create the reconciler for game servers.

        Returns
        -------
        GameServerReconciler
            Newly-created reconciler.
        """
        client = self._context.kubernetes_client
        return GameServerReconciler(
            service_builder=ServiceBuilder(self._logger),
            route_builder=self.create_route_builder(),
            gameserver_storage=self.create_gameserver_storage(),
            service_storage=ServiceStorage(client, self._logger),
            endpoints_storage=EndpointsStorage(client, self._logger),
            route_storage=IngressRouteStorage(client, self._logger),
            logger=self._logger,
        )

    def create_route_builder(self) -> IngressRouteBuilder:
        """Create builder service for game server routes.

        Returns
        -------
        IngressRouteBuilder
            Newly-created route builder.
        """
        return IngressRouteBuilder(self._context.config.routing)

    def set_logger(self, logger: BoundLogger) -> None:
        """Replace the internal logger.

        Used by the context dependency to update the logger for all
        newly-created components when it's rebound with additional context.

        Parameters
        ----------
        logger
            New logger.
        """
        self._logger = logger

    async def start_background_services(self) -> None:
        """Start global background services managed by the process context.

        These are normally started by the context dependency when running as a
        FastAPI app, but the test suite may want the background processes
        running while testing with only a factory.

        Only used by the test suite.
        """
        await self._context.start()
        self._background_services_started = True
