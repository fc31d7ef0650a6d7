"""Storage layer for Kubernetes custom objects."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from kubernetes_asyncio import client
from kubernetes_asyncio.client import ApiClient, ApiException
from structlog.stdlib import BoundLogger

from ...constants import (
    GAMESERVER_GROUP,
    GAMESERVER_KIND,
    GAMESERVER_PLURAL,
    GAMESERVER_VERSION,
    INGRESSROUTE_GROUP,
    INGRESSROUTE_KIND,
    INGRESSROUTE_PLURAL,
    INGRESSROUTE_VERSION,
)
from ...exceptions import KubernetesError
from ...models.domain.gameserver import GameServer, GameServerIdentity
from ...models.domain.kubernetes import WatchEventType
from ...timeout import Timeout
from .watcher import KubernetesWatcher

__all__ = [
    "CustomStorage",
    "GameServerStorage",
    "IngressRouteStorage",
]


class CustomStorage:
    """Storage layer for Kubernetes custom objects.

    Normally, this class should be subclassed to specialize it for a specific
    custom object type, which provides a slightly nicer API, but it can be
    used as-is if desired.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    group
        API group for the custom objects to handle.
    version
        API version for the custom objects to handle.
    plural
        API plural under which those custom objects are managed.
    kind
        Name of the custom object kind, used for error reporting.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        api_client: ApiClient,
        group: str,
        version: str,
        plural: str,
        kind: str,
        logger: BoundLogger,
    ) -> None:
        self._api = client.CustomObjectsApi(api_client)
        self._group = group
        self._version = version
        self._plural = plural
        self._kind = kind
        self._logger = logger

    async def create(
        self,
        namespace: str,
        body: dict[str, Any],
        timeout: Timeout,
        *,
        exists_ok: bool = False,
    ) -> bool:
        """Create a new custom object.

        Parameters
        ----------
        namespace
            Namespace of the object.
        body
            Custom object to create.
        timeout
            Timeout on operation.
        exists_ok
            If `True`, an object of that name already existing is not an
            error. Kubernetes reports both an existing object and a
            conflicting concurrent creation with status 409.

        Returns
        -------
        bool
            `True` if the object was created, `False` if it already existed
            and ``exists_ok`` was set.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        name = body["metadata"]["name"]
        msg = f"Creating {self._kind}"
        self._logger.debug(msg, name=name, namespace=namespace)
        try:
            await self._api.create_namespaced_custom_object(
                self._group,
                self._version,
                namespace,
                self._plural,
                body,
                _request_timeout=timeout.left(),
            )
        except ApiException as e:
            if exists_ok and e.status == 409:
                msg = f"{self._kind} already exists"
                self._logger.debug(msg, name=name, namespace=namespace)
                return False
            raise KubernetesError.from_exception(
                "Error creating object",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e
        return True

    async def read(
        self, name: str, namespace: str, timeout: Timeout
    ) -> dict[str, Any] | None:
        """Read a custom object.

        Parameters
        ----------
        name
            Name of the custom object.
        namespace
            Namespace of the custom object.
        timeout
            Timeout on operation.

        Returns
        -------
        dict or None
            Custom object, or `None` if it does not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        try:
            return await self._api.get_namespaced_custom_object(
                self._group,
                self._version,
                namespace,
                self._plural,
                name,
                _request_timeout=timeout.left(),
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesError.from_exception(
                "Error reading object",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e

    async def list(
        self, namespace: str | None, timeout: Timeout
    ) -> dict[str, Any]:
        """List the custom objects in a namespace or the whole cluster.

        Parameters
        ----------
        namespace
            Namespace in which to list custom objects, or `None` to list
            them in every namespace.
        timeout
            Timeout on operation.

        Returns
        -------
        dict
            List response, with the objects under ``items`` and the resource
            version of the list under ``metadata``.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        try:
            if namespace:
                return await self._api.list_namespaced_custom_object(
                    self._group,
                    self._version,
                    namespace,
                    self._plural,
                    _request_timeout=timeout.left(),
                )
            return await self._api.list_cluster_custom_object(
                self._group,
                self._version,
                self._plural,
                _request_timeout=timeout.left(),
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error listing objects",
                e,
                kind=self._kind,
                namespace=namespace,
            ) from e

    def watcher(
        self, namespace: str | None, resource_version: str | None = None
    ) -> KubernetesWatcher[dict[str, Any]]:
        """Create a watcher for these custom objects.

        Parameters
        ----------
        namespace
            Namespace to watch, or `None` to watch every namespace.
        resource_version
            Resource version at which to start the watch.

        Returns
        -------
        KubernetesWatcher
            Watcher, which must be closed by the caller.
        """
        if namespace:
            method = self._api.list_namespaced_custom_object
        else:
            method = self._api.list_cluster_custom_object
        return KubernetesWatcher(
            method=method,
            object_type=dict[str, Any],
            kind=self._kind,
            namespace=namespace,
            group=self._group,
            version=self._version,
            plural=self._plural,
            resource_version=resource_version,
            logger=self._logger,
        )


class GameServerStorage(CustomStorage):
    """Storage layer for PlayFab ``GameServer`` objects.

    Game servers are owned by the game server operator and are only read and
    watched, never modified.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        super().__init__(
            api_client=api_client,
            group=GAMESERVER_GROUP,
            version=GAMESERVER_VERSION,
            plural=GAMESERVER_PLURAL,
            kind=GAMESERVER_KIND,
            logger=logger,
        )

    async def read_gameserver(
        self, name: str, namespace: str, timeout: Timeout
    ) -> GameServer | None:
        """Read and parse a game server.

        Parameters
        ----------
        name
            Name of the game server.
        namespace
            Namespace of the game server.
        timeout
            Timeout on operation.

        Returns
        -------
        GameServer or None
            Parsed game server, or `None` if it does not exist.

        Raises
        ------
        InvalidGameServerError
            Raised if the game server could not be parsed.
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        obj = await self.read(name, namespace, timeout)
        return GameServer.from_object(obj) if obj else None

    async def watch_identities(
        self, namespace: str | None, timeout: Timeout
    ) -> AsyncIterator[GameServerIdentity]:
        """Yield every game server that may need reconciliation.

        All existing game servers are yielded first, then any game server
        that is added or modified, until the iterator is closed. Deleted game
        servers are skipped, since Kubernetes garbage collection handles their
        derived objects.

        Parameters
        ----------
        namespace
            Namespace to watch, or `None` to watch every namespace.
        timeout
            Timeout for the initial list operation.

        Yields
        ------
        GameServerIdentity
            Namespace and name of a game server.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        objs = await self.list(namespace, timeout)
        for obj in objs["items"]:
            yield GameServerIdentity.from_object(obj)
        resource_version = objs.get("metadata", {}).get("resourceVersion")

        watcher = self.watcher(namespace, resource_version)
        try:
            async for event in watcher.watch():
                if event.action == WatchEventType.DELETED:
                    continue
                yield GameServerIdentity.from_object(event.object)
        finally:
            await watcher.close()


class IngressRouteStorage(CustomStorage):
    """Storage layer for Traefik ``IngressRoute`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        super().__init__(
            api_client=api_client,
            group=INGRESSROUTE_GROUP,
            version=INGRESSROUTE_VERSION,
            plural=INGRESSROUTE_PLURAL,
            kind=INGRESSROUTE_KIND,
            logger=logger,
        )
