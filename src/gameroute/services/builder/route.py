"""Construction of the Traefik ``IngressRoute`` for a game server."""

from __future__ import annotations

from typing import Any

from kubernetes_asyncio.client import V1Service

from ...config import RoutingConfig
from ...constants import (
    INGRESSROUTE_GROUP,
    INGRESSROUTE_KIND,
    INGRESSROUTE_VERSION,
)
from ...models.domain.gameserver import GameServer
from .metadata import build_metadata

__all__ = ["IngressRouteBuilder"]


class IngressRouteBuilder:
    """Construct the Traefik ``IngressRoute`` that exposes a game server.

    Parameters
    ----------
    config
        Traefik settings shared by all routes.
    """

    def __init__(self, config: RoutingConfig) -> None:
        self._config = config

    def build(
        self, gameserver: GameServer, service: V1Service
    ) -> dict[str, Any]:
        """Construct the route for a game server.

        The route sends every port of the service that Kubernetes actually
        created, not the ports the game server currently asks for, since the
        service is never updated after creation.

        Parameters
        ----------
        gameserver
            Game server to expose.
        service
            Service for that game server, as read from Kubernetes.

        Returns
        -------
        dict
            ``IngressRoute`` custom object.
        """
        name = gameserver.metadata.name
        metadata = build_metadata(gameserver).to_dict(serialize=True)
        services = [
            {"name": service.metadata.name, "port": p.port}
            for p in service.spec.ports or []
        ]
        route = {
            "kind": "Rule",
            "match": self.build_match(name),
            "middlewares": [self._build_middleware()],
            "services": services,
        }
        return {
            "apiVersion": f"{INGRESSROUTE_GROUP}/{INGRESSROUTE_VERSION}",
            "kind": INGRESSROUTE_KIND,
            "metadata": metadata,
            "spec": {
                "entryPoints": self._config.entry_points,
                "routes": [route],
            },
        }

    def build_match(self, name: str) -> str:
        """Construct the Traefik match rule for a game server.

        Parameters
        ----------
        name
            Name of the game server.

        Returns
        -------
        str
            Rule matching the configured host and the game server path.
        """
        return f"Host(`{self._config.host}`) && PathPrefix(`/{name}`)"

    def _build_middleware(self) -> dict[str, str]:
        """Construct the reference to the configured middleware."""
        middleware = {"name": self._config.middleware_name}
        if self._config.middleware_namespace:
            middleware["namespace"] = self._config.middleware_namespace
        return middleware
