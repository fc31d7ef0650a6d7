"""Models for PlayFab ``GameServer`` custom objects.

Only the portions of the ``GameServer`` schema that the controller uses are
modeled. Everything else in the object is ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Self

from kubernetes_asyncio.client import V1OwnerReference
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ...constants import GAMESERVER_GROUP, GAMESERVER_KIND, GAMESERVER_VERSION
from ...exceptions import InvalidGameServerError

__all__ = [
    "GameServer",
    "GameServerContainer",
    "GameServerIdentity",
    "GameServerMetadata",
    "GameServerSpec",
    "PortProtocol",
    "PortToExpose",
]


@dataclass(frozen=True, slots=True)
class GameServerIdentity:
    """Namespace and name of a game server.

    This is the unit of work handed to the reconciler. Every derived object
    has the same namespace and name as its game server.
    """

    namespace: str
    """Namespace of the game server."""

    name: str
    """Name of the game server."""

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> Self:
        """Extract the identity from a raw ``GameServer`` object.

        Parameters
        ----------
        obj
            Custom object as returned by the Kubernetes API.

        Returns
        -------
        GameServerIdentity
            Namespace and name of that object.
        """
        metadata = obj["metadata"]
        return cls(namespace=metadata["namespace"], name=metadata["name"])

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class PortProtocol(Enum):
    """Transport protocol of a container port."""

    TCP = "TCP"
    UDP = "UDP"
    SCTP = "SCTP"


class ContainerPort(BaseModel):
    """One port declared by a game server container."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Annotated[
        str | None,
        Field(
            title="Port name",
            description="Name referenced by ``portsToExpose`` entries",
        ),
    ] = None

    container_port: Annotated[
        int, Field(title="Port number", ge=1, le=65535)
    ]

    protocol: Annotated[
        PortProtocol,
        Field(
            title="Protocol",
            description="Kubernetes defaults this to TCP if not given",
        ),
    ] = PortProtocol.TCP


class GameServerContainer(BaseModel):
    """A container in the game server pod template."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Annotated[str, Field(title="Container name")]

    ports: Annotated[
        list[ContainerPort], Field(title="Declared ports")
    ] = []


class GameServerPodSpec(BaseModel):
    """Pod specification of the game server template."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    containers: list[GameServerContainer] = []


class GameServerTemplate(BaseModel):
    """Pod template of a game server."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    spec: GameServerPodSpec = GameServerPodSpec()


class PortToExpose(BaseModel):
    """A container port that should be reachable from outside the cluster."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    container_name: Annotated[
        str,
        Field(
            title="Container name",
            description="Name of the container declaring the port",
        ),
    ]

    port_name: Annotated[
        str,
        Field(
            title="Port name",
            description="Name of the port within that container",
        ),
    ]


class GameServerSpec(BaseModel):
    """Specification of a game server."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    template: GameServerTemplate = GameServerTemplate()

    ports_to_expose: Annotated[
        list[PortToExpose],
        Field(
            title="Ports to expose",
            description=(
                "Container ports to make reachable from outside the cluster,"
                " in the order they should appear in the service"
            ),
        ),
    ] = []


class GameServerMetadata(BaseModel):
    """Kubernetes metadata of a game server."""

    name: str
    namespace: str
    uid: str


class GameServer(BaseModel):
    """A PlayFab ``GameServer`` object."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    metadata: GameServerMetadata

    spec: GameServerSpec

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> Self:
        """Parse a raw ``GameServer`` custom object.

        Parameters
        ----------
        obj
            Custom object as returned by the Kubernetes API.

        Returns
        -------
        GameServer
            Parsed game server.

        Raises
        ------
        InvalidGameServerError
            Raised if the object does not match the expected schema.
        """
        try:
            return cls.model_validate(obj)
        except ValidationError as e:
            metadata = obj.get("metadata", {})
            raise InvalidGameServerError.from_exception(
                e,
                namespace=metadata.get("namespace", "<unknown>"),
                name=metadata.get("name", "<unknown>"),
            ) from e

    def to_owner_reference(self) -> V1OwnerReference:
        """Build the owner reference placed on every derived object.

        Kubernetes garbage collection deletes the derived objects when the
        game server is deleted.

        Returns
        -------
        kubernetes_asyncio.client.V1OwnerReference
            Controller reference to this game server.
        """
        return V1OwnerReference(
            api_version=f"{GAMESERVER_GROUP}/{GAMESERVER_VERSION}",
            kind=GAMESERVER_KIND,
            name=self.metadata.name,
            uid=self.metadata.uid,
            controller=True,
            block_owner_deletion=True,
        )
