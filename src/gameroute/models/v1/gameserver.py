"""API-visible models for game server routing status."""

from __future__ import annotations

from typing import Annotated, Self

from kubernetes_asyncio.client import V1ServicePort
from pydantic import BaseModel, Field

from ..domain.gameserver import GameServerIdentity
from ..domain.reconcile import ObservedState, ReconcileState

__all__ = [
    "GameServerStatus",
    "ServicePort",
]


class ServicePort(BaseModel):
    """A port of the service for a game server."""

    name: Annotated[
        str | None, Field(title="Name of port", examples=["game"])
    ] = None

    port: Annotated[int, Field(title="Port number", examples=[7777])]

    protocol: Annotated[
        str, Field(title="Port protocol", examples=["TCP"])
    ] = "TCP"

    @classmethod
    def from_kubernetes(cls, port: V1ServicePort) -> Self:
        """Convert from the Kubernetes model of a service port.

        Parameters
        ----------
        port
            Port from a Kubernetes ``Service``.

        Returns
        -------
        ServicePort
            Corresponding API model.
        """
        return cls(
            name=port.name, port=port.port, protocol=port.protocol or "TCP"
        )


class GameServerStatus(BaseModel):
    """How far a game server is along the way to being routed."""

    namespace: Annotated[
        str, Field(title="Namespace of game server", examples=["games"])
    ]

    name: Annotated[
        str, Field(title="Name of game server", examples=["gameserver-0"])
    ]

    state: Annotated[
        ReconcileState,
        Field(
            title="Reconcile state",
            description=(
                "The next step needed to expose the game server, or"
                " ``converged`` if it is fully exposed"
            ),
            examples=[ReconcileState.CONVERGED],
        ),
    ]

    ports: Annotated[
        list[ServicePort],
        Field(
            title="Service ports",
            description=(
                "Ports of the game server service. Empty if the service does"
                " not exist yet."
            ),
        ),
    ] = []

    match: Annotated[
        str | None,
        Field(
            title="Route match rule",
            description="Traefik match rule of the route, if it exists",
            examples=["Host(`games.example.com`) && PathPrefix(`/gs-0`)"],
        ),
    ] = None

    @classmethod
    def from_observed(
        cls, identity: GameServerIdentity, observed: ObservedState
    ) -> Self:
        """Summarize the objects found for a game server.

        Parameters
        ----------
        identity
            Game server that was inspected.
        observed
            Objects found in Kubernetes.

        Returns
        -------
        GameServerStatus
            Status of that game server.
        """
        ports = []
        if observed.service and observed.service.spec:
            service_ports = observed.service.spec.ports or []
            ports = [ServicePort.from_kubernetes(p) for p in service_ports]
        match = None
        if observed.route:
            routes = observed.route.get("spec", {}).get("routes", [])
            if routes:
                match = routes[0].get("match")
        return cls(
            namespace=identity.namespace,
            name=identity.name,
            state=observed.state,
            ports=ports,
            match=match,
        )
