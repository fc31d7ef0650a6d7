"""Mapping of game server ports to service ports."""

from __future__ import annotations

from kubernetes_asyncio.client import V1ServicePort
from structlog.stdlib import BoundLogger

from ...constants import SUPPORTED_PROTOCOLS
from ...models.domain.gameserver import ContainerPort, GameServer, PortToExpose

__all__ = ["build_service_ports"]


def build_service_ports(
    gameserver: GameServer, logger: BoundLogger
) -> list[V1ServicePort]:
    """Determine the service ports for a game server.

    Each entry in ``portsToExpose`` is resolved against the ports declared by
    the game server's containers. Entries that refer to a container or port
    that doesn't exist, or to a port whose protocol Traefik cannot route, are
    skipped. The game server schema cannot be fully validated on admission,
    so this is not an error.

    Parameters
    ----------
    gameserver
        Game server whose ports should be exposed.
    logger
        Logger for skipped ports.

    Returns
    -------
    list of kubernetes_asyncio.client.V1ServicePort
        Service ports, in the order of ``portsToExpose``.
    """
    result = []
    for expose in gameserver.spec.ports_to_expose:
        port = _find_port(gameserver, expose)
        if not port:
            logger.warning(
                "Port to expose not found in game server, skipping",
                container=expose.container_name,
                port=expose.port_name,
            )
            continue
        protocol = port.protocol.value
        if protocol not in SUPPORTED_PROTOCOLS:
            logger.info(
                f"{protocol} ports are not supported, skipping",
                container=expose.container_name,
                port=expose.port_name,
            )
            continue
        service_port = V1ServicePort(
            name=expose.port_name, port=port.container_port, protocol=protocol
        )
        result.append(service_port)
    if not result:
        logger.warning(
            "No routable ports to expose, service will be rejected",
            ports_to_expose=len(gameserver.spec.ports_to_expose),
        )
    return result


def _find_port(
    gameserver: GameServer, expose: PortToExpose
) -> ContainerPort | None:
    """Find the container port referred to by a ``portsToExpose`` entry."""
    for container in gameserver.spec.template.spec.containers:
        if container.name != expose.container_name:
            continue
        for port in container.ports:
            if port.name == expose.port_name:
                return port
    return None
