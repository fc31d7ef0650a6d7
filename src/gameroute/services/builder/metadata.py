"""Metadata shared by all objects derived from a game server."""

from __future__ import annotations

from kubernetes_asyncio.client import V1ObjectMeta

from ...models.domain.gameserver import GameServer

__all__ = ["build_metadata"]


def build_metadata(gameserver: GameServer) -> V1ObjectMeta:
    """Construct the metadata for an object derived from a game server.

    Derived objects have the same name and namespace as their game server and
    are owned by it, so Kubernetes deletes them along with the game server.

    Parameters
    ----------
    gameserver
        Owning game server.

    Returns
    -------
    kubernetes_asyncio.client.V1ObjectMeta
        Metadata for the derived object.
    """
    return V1ObjectMeta(
        name=gameserver.metadata.name,
        namespace=gameserver.metadata.namespace,
        owner_references=[gameserver.to_owner_reference()],
    )
