"""Generic Kubernetes object storage supporting read and create.

Provides generic Kubernetes object management classes and instantiations of
those classes for the built-in Kubernetes object types the controller uses.
The controller only ever reads and creates objects: derived objects are
deleted by Kubernetes garbage collection when their game server goes away.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from kubernetes_asyncio import client
from kubernetes_asyncio.client import (
    ApiClient,
    ApiException,
    V1Endpoints,
    V1Service,
)
from structlog.stdlib import BoundLogger

from ...exceptions import KubernetesError
from ...models.domain.kubernetes import KubernetesModel
from ...timeout import Timeout

__all__ = [
    "EndpointsStorage",
    "KubernetesObjectCreator",
    "KubernetesObjectReader",
    "ServiceStorage",
]


class KubernetesObjectReader[T: KubernetesModel]:
    """Generic Kubernetes object storage supporting read.

    This class provides a wrapper around any Kubernetes object type that
    implements a read operation with logging and exception conversion.

    This class is not meant to be used directly by code outside of the
    Kubernetes storage layer. Use one of the kind-specific storage classes
    built on top of it instead.

    Parameters
    ----------
    read_method
        Method to read this type of object.
    kind
        Kubernetes kind of object being acted on.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        read_method: Callable[..., Awaitable[Any]],
        kind: str,
        logger: BoundLogger,
    ) -> None:
        self._read = read_method
        self._kind = kind
        self._logger = logger

    async def read(
        self, name: str, namespace: str, timeout: Timeout
    ) -> T | None:
        """Read a Kubernetes object.

        Parameters
        ----------
        name
            Name of the object.
        namespace
            Namespace of the object.
        timeout
            Timeout on operation.

        Returns
        -------
        typing.Any or None
            Kubernetes object, or `None` if it does not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        try:
            return await self._read(
                name, namespace, _request_timeout=timeout.left()
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


class KubernetesObjectCreator[T: KubernetesModel](KubernetesObjectReader[T]):
    """Generic Kubernetes object storage supporting read and create.

    Parameters
    ----------
    create_method
        Method to create this type of object.
    read_method
        Method to read this type of object.
    kind
        Kubernetes kind of object being acted on.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        create_method: Callable[..., Awaitable[Any]],
        read_method: Callable[..., Awaitable[Any]],
        kind: str,
        logger: BoundLogger,
    ) -> None:
        super().__init__(
            read_method=read_method,
            kind=kind,
            logger=logger,
        )
        self._create = create_method

    async def create(
        self,
        namespace: str,
        body: T,
        timeout: Timeout,
        *,
        exists_ok: bool = False,
    ) -> bool:
        """Create a new Kubernetes object.

        Parameters
        ----------
        namespace
            Namespace of the object.
        body
            New object.
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
        name = body.metadata.name
        msg = f"Creating {self._kind}"
        self._logger.debug(msg, name=name, namespace=namespace)
        try:
            await self._create(
                namespace, body, _request_timeout=timeout.left()
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


class EndpointsStorage(KubernetesObjectReader[V1Endpoints]):
    """Storage layer for ``Endpoints`` objects.

    Endpoints are maintained by Kubernetes and are only ever read.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.CoreV1Api(api_client)
        super().__init__(
            read_method=api.read_namespaced_endpoints,
            kind="Endpoints",
            logger=logger,
        )


class ServiceStorage(KubernetesObjectCreator[V1Service]):
    """Storage layer for ``Service`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.CoreV1Api(api_client)
        super().__init__(
            create_method=api.create_namespaced_service,
            read_method=api.read_namespaced_service,
            kind="Service",
            logger=logger,
        )
