"""Reconciliation of game servers with their services and routes."""

from __future__ import annotations

from kubernetes_asyncio.client import V1Service
from structlog.stdlib import BoundLogger

from ..constants import READINESS_REQUEUE_DELAY
from ..models.domain.gameserver import GameServer, GameServerIdentity
from ..models.domain.kubernetes import endpoints_are_ready
from ..models.domain.reconcile import (
    ObservedState,
    ReconcileAction,
    ReconcileResult,
    ReconcileState,
)
from ..storage.kubernetes.creator import EndpointsStorage, ServiceStorage
from ..storage.kubernetes.custom import GameServerStorage, IngressRouteStorage
from ..timeout import Timeout
from .builder.route import IngressRouteBuilder
from .builder.service import ServiceBuilder

__all__ = ["GameServerReconciler"]


class GameServerReconciler:
    """Converge the objects derived from a game server one step at a time.

    Each call to `reconcile` reads the current state of a game server and
    its derived objects from Kubernetes, then performs at most one creation.
    Nothing is remembered between calls, so repeating a call any number of
    times, in any order and concurrently, converges on the same objects
    without duplicates. Every creation is preceded by a check that the object
    does not exist, and losing a race to create the object to another
    reconciliation is treated as success.

    The derived objects are created in order:

    #. The ``Service`` selecting the game server pod.
    #. Once the ``Endpoints`` of that service show a ready pod, the Traefik
       ``IngressRoute``, which sends traffic to the ports of the service.

    Derived objects are never updated or deleted. Kubernetes deletes them via
    their owner reference when the game server is deleted.

    Parameters
    ----------
    service_builder
        Builder for game server services.
    route_builder
        Builder for game server routes.
    gameserver_storage
        Storage for ``GameServer`` objects.
    service_storage
        Storage for ``Service`` objects.
    endpoints_storage
        Storage for ``Endpoints`` objects.
    route_storage
        Storage for ``IngressRoute`` objects.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        service_builder: ServiceBuilder,
        route_builder: IngressRouteBuilder,
        gameserver_storage: GameServerStorage,
        service_storage: ServiceStorage,
        endpoints_storage: EndpointsStorage,
        route_storage: IngressRouteStorage,
        logger: BoundLogger,
    ) -> None:
        self._service_builder = service_builder
        self._route_builder = route_builder
        self._gameservers = gameserver_storage
        self._services = service_storage
        self._endpoints = endpoints_storage
        self._routes = route_storage
        self._logger = logger

    async def observe(
        self, identity: GameServerIdentity, timeout: Timeout
    ) -> ObservedState:
        """Read the game server and whichever derived objects matter.

        Reads stop at the first missing object, since its absence alone
        determines the state.

        Parameters
        ----------
        identity
            Game server to inspect.
        timeout
            Timeout on the Kubernetes API calls.

        Returns
        -------
        ObservedState
            Objects found in Kubernetes.

        Raises
        ------
        InvalidGameServerError
            Raised if the game server could not be parsed.
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        name = identity.name
        namespace = identity.namespace
        gameserver = await self._gameservers.read_gameserver(
            name, namespace, timeout
        )
        if not gameserver:
            return ObservedState()
        service = await self._services.read(name, namespace, timeout)
        if not service:
            return ObservedState(gameserver=gameserver)
        endpoints = await self._endpoints.read(name, namespace, timeout)
        if not endpoints_are_ready(endpoints):
            return ObservedState(
                gameserver=gameserver, service=service, endpoints=endpoints
            )
        route = await self._routes.read(name, namespace, timeout)
        return ObservedState(
            gameserver=gameserver,
            service=service,
            endpoints=endpoints,
            route=route,
        )

    async def reconcile(
        self, identity: GameServerIdentity, timeout: Timeout
    ) -> ReconcileResult:
        """Perform the next step toward exposing a game server.

        Parameters
        ----------
        identity
            Game server to reconcile.
        timeout
            Deadline for the whole reconciliation.

        Returns
        -------
        ReconcileResult
            Observed state, the object created if any, and whether the game
            server should be reconciled again after a delay.

        Raises
        ------
        InvalidGameServerError
            Raised if the game server could not be parsed.
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        ReconcileTimeoutError
            Raised if the reconciliation did not finish before the deadline.
        """
        logger = self._logger.bind(
            namespace=identity.namespace, name=identity.name
        )
        async with timeout.enforce():
            observed = await self.observe(identity, timeout)
            state = observed.state
            match state:
                case ReconcileState.WORKLOAD_MISSING:
                    logger.debug("Game server not found, nothing to do")
                    return ReconcileResult(state=state)
                case ReconcileState.NO_SERVICE:
                    assert observed.gameserver
                    action = await self._create_service(
                        observed.gameserver, timeout, logger
                    )

                    # The new service cannot have ready endpoints yet.
                    return ReconcileResult(
                        state=state,
                        action=action,
                        requeue_after=READINESS_REQUEUE_DELAY,
                    )
                case ReconcileState.NO_ENDPOINTS:
                    logger.debug("Waiting for game server endpoints")
                    return ReconcileResult(
                        state=state, requeue_after=READINESS_REQUEUE_DELAY
                    )
                case ReconcileState.NO_ROUTE:
                    assert observed.gameserver
                    assert observed.service
                    action = await self._create_route(
                        observed.gameserver, observed.service, timeout, logger
                    )
                    return ReconcileResult(state=state, action=action)
                case ReconcileState.CONVERGED:
                    return ReconcileResult(state=state)

    async def _create_service(
        self, gameserver: GameServer, timeout: Timeout, logger: BoundLogger
    ) -> ReconcileAction | None:
        """Create the service for a game server.

        Returns
        -------
        ReconcileAction or None
            `ReconcileAction.SERVICE_CREATED`, or `None` if another
            reconciliation created the service first.
        """
        service = self._service_builder.build(gameserver)
        namespace = gameserver.metadata.namespace
        created = await self._services.create(
            namespace, service, timeout, exists_ok=True
        )
        if not created:
            logger.info("Game server service already exists")
            return None
        ports = [p.port for p in service.spec.ports]
        logger.info("Created game server service", ports=ports)
        return ReconcileAction.SERVICE_CREATED

    async def _create_route(
        self,
        gameserver: GameServer,
        service: V1Service,
        timeout: Timeout,
        logger: BoundLogger,
    ) -> ReconcileAction | None:
        """Create the Traefik route for a game server.

        Returns
        -------
        ReconcileAction or None
            `ReconcileAction.ROUTE_CREATED`, or `None` if another
            reconciliation created the route first.
        """
        route = self._route_builder.build(gameserver, service)
        namespace = gameserver.metadata.namespace
        created = await self._routes.create(
            namespace, route, timeout, exists_ok=True
        )
        if not created:
            logger.info("Game server route already exists")
            return None
        rule = route["spec"]["routes"][0]["match"]
        logger.info("Created game server route", match=rule)
        return ReconcileAction.ROUTE_CREATED
