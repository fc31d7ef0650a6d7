"""Construction of the ``Service`` for a game server."""

from __future__ import annotations

from kubernetes_asyncio.client import V1Service, V1ServiceSpec
from structlog.stdlib import BoundLogger

from ...constants import SELECTOR_LABEL
from ...models.domain.gameserver import GameServer
from .metadata import build_metadata
from .ports import build_service_ports

__all__ = ["ServiceBuilder"]


class ServiceBuilder:
    """Construct the ``Service`` that fronts a game server.

    The result depends only on the game server, so building the service
    twice from the same game server produces identical objects.

    Parameters
    ----------
    logger
        Logger to use for ports that cannot be exposed.
    """

    def __init__(self, logger: BoundLogger) -> None:
        self._logger = logger

    def build(self, gameserver: GameServer) -> V1Service:
        """Construct the service for a game server.

        Parameters
        ----------
        gameserver
            Game server to expose.

        Returns
        -------
        kubernetes_asyncio.client.V1Service
            Service selecting the game server's pod.
        """
        logger = self._logger.bind(
            namespace=gameserver.metadata.namespace,
            name=gameserver.metadata.name,
        )
        return V1Service(
            api_version="v1",
            kind="Service",
            metadata=build_metadata(gameserver),
            spec=V1ServiceSpec(
                selector={SELECTOR_LABEL: gameserver.metadata.name},
                ports=build_service_ports(gameserver, logger),
            ),
        )
