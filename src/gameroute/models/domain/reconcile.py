"""Models for the state of a game server reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any

from kubernetes_asyncio.client import V1Endpoints, V1Service

from .gameserver import GameServer
from .kubernetes import endpoints_are_ready

__all__ = [
    "ObservedState",
    "ReconcileAction",
    "ReconcileResult",
    "ReconcileState",
]


class ReconcileState(Enum):
    """Convergence state of a game server, derived from what exists."""

    WORKLOAD_MISSING = "workload_missing"
    NO_SERVICE = "no_service"
    NO_ENDPOINTS = "no_endpoints"
    NO_ROUTE = "no_route"
    CONVERGED = "converged"


class ReconcileAction(Enum):
    """Creation performed by a reconciliation, if any."""

    SERVICE_CREATED = "service_created"
    ROUTE_CREATED = "route_created"


@dataclass(frozen=True, slots=True)
class ObservedState:
    """Objects read from Kubernetes during one reconciliation.

    Reads stop as soon as the state is known, so later objects are `None`
    both when they do not exist and when they were never read.
    """

    gameserver: GameServer | None = None
    """The game server, if it exists."""

    service: V1Service | None = None
    """The game server's service, if it exists."""

    endpoints: V1Endpoints | None = None
    """The endpoints of that service, if they exist."""

    route: dict[str, Any] | None = None
    """The game server's ``IngressRoute``, if it exists."""

    @property
    def state(self) -> ReconcileState:
        """Convergence state implied by the observed objects."""
        if not self.gameserver:
            return ReconcileState.WORKLOAD_MISSING
        if not self.service:
            return ReconcileState.NO_SERVICE
        if not endpoints_are_ready(self.endpoints):
            return ReconcileState.NO_ENDPOINTS
        if not self.route:
            return ReconcileState.NO_ROUTE
        return ReconcileState.CONVERGED


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Outcome of one reconciliation, returned to the dispatcher."""

    state: ReconcileState
    """State observed at the start of the reconciliation."""

    action: ReconcileAction | None = None
    """Object created by this reconciliation, if any."""

    requeue_after: timedelta | None = None
    """If set, reconcile this game server again after this delay.

    `None` means the game server needs no further work until it changes.
    """

    @property
    def done(self) -> bool:
        """Whether no further reconciliation was requested."""
        return self.requeue_after is None
