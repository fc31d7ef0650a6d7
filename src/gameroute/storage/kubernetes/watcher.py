"""Watch a Kubernetes namespace or cluster for events."""

from __future__ import annotations

import asyncio
import math
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Self

from kubernetes_asyncio.client import ApiException
from kubernetes_asyncio.watch import Watch
from structlog.stdlib import BoundLogger

from ...constants import (
    WATCH_RETRY_DELAY,
    WATCH_STREAM_TIMEOUT,
    WATCH_TIMEOUT_GRACE,
)
from ...exceptions import KubernetesError
from ...models.domain.kubernetes import WatchEventType

__all__ = [
    "KubernetesWatcher",
    "WatchEvent",
]


@dataclass
class WatchEvent[T]:
    """Parsed event from a Kubernetes watch.

    This model is intended only for use within the Kubernetes storage layer.
    It is interpreted by the callers of the generic watch class inside the
    per-object Kubernetes storage classes.
    """

    action: WatchEventType
    """Action the event represents."""

    object: T
    """Affected Kubernetes object."""

    @classmethod
    def from_event(cls, event: dict[str, Any], object_type: type[T]) -> Self:
        """Create a `WatchEvent` from a watch event.

        Parameters
        ----------
        event
            Event as returned by the Kubernetes watch API.
        object_type
            Expected type of the object.

        Raises
        ------
        TypeError
            Raised if the type of the object in the watch event was incorrect.
        """
        action = WatchEventType(event["type"])
        if object_type.__name__ == "dict":
            return cls(action=action, object=event["raw_object"])
        obj = event["object"]
        if not isinstance(obj, object_type):
            real_type = type(obj).__name__
            expected_type = object_type.__name__
            msg = f"Watch object was of type {real_type}, not {expected_type}"
            raise TypeError(msg)
        return cls(action=action, object=obj)


class KubernetesWatcher[T]:
    """Watch Kubernetes for events.

    This wrapper around the watch API of the Kubernetes client reopens the
    watch when a stream ends, handles expired resource versions, and fixes
    typing problems when used with the Safir
    `~safir.testing.kubernetes.MockKubernetesApi` mock. The latter confuses
    the type detection in the ``kubernetes_asyncio`` library, which is handled
    here by passing in an explicit return type.

    Every stream is opened with a server-side timeout and a slightly longer
    client-side timeout, so a connection that died without being closed is
    replaced rather than waited on forever. The watch runs until the caller
    stops iterating or an error is raised.

    This class is not meant to be used directly by code outside of the
    Kubernetes storage layer. Use one of the kind-specific storage classes
    built on top of it instead.

    Parameters
    ----------
    method
        API list method that supports the watch API.
    object_type
        Type of object being watched. This cannot be autodiscovered from the
        method because of the problems with docstring parsing and therefore
        must be provided by the caller and must match the type of object
        returned by the method. For custom objects, this should be a `dict`
        type.
    kind
        Kubernetes kind of object being watched, for error reporting.
    namespace
        Namespace to watch. If not given, the method must be a cluster-wide
        list method.
    group
        Group of custom object.
    version
        Version of custom object.
    plural
        Plural of custom object.
    resource_version
        Resource version at which to start the watch.
    stream_timeout
        Server-side timeout of each watch stream.
    retry_delay
        Pause before reopening a stream that ended without any events.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        method: Callable[..., Awaitable[Any]],
        object_type: type[T],
        kind: str,
        namespace: str | None = None,
        group: str | None = None,
        version: str | None = None,
        plural: str | None = None,
        resource_version: str | None = None,
        stream_timeout: timedelta = WATCH_STREAM_TIMEOUT,
        retry_delay: timedelta = WATCH_RETRY_DELAY,
        logger: BoundLogger,
    ) -> None:
        self._method = method
        self._type = object_type
        self._kind = kind
        self._namespace = namespace
        self._retry_delay = retry_delay
        self._logger = logger

        # Build the arguments to the method being watched.
        args: dict[str, Any] = {
            "group": group,
            "version": version,
            "plural": plural,
            "namespace": namespace,
            "resource_version": resource_version,
        }
        self._args = {k: v for k, v in args.items() if v is not None}
        self._args["timeout_seconds"] = math.ceil(
            stream_timeout.total_seconds()
        )
        request_timeout = stream_timeout + WATCH_TIMEOUT_GRACE
        self._args["_request_timeout"] = request_timeout.total_seconds()

        # Passing in an explicit type should not be necessary, but the
        # kubernetes_asyncio module determines the type of a method by parsing
        # its docstring and expects native Sphinx markup. This means that if
        # the Safir MockKubernetesApi mock API is in use, the automatic type
        # discovery breaks, because we use the numpy convention.
        self._watch = Watch(return_type=object_type)

    async def close(self) -> None:
        """Close the internal API client used by the watch API."""
        self._watch.stop()
        await self._watch.close()

    async def watch(self) -> AsyncIterator[WatchEvent[T]]:
        """Watch Kubernetes for events.

        Each stream ends when the server-side timeout expires, or raises
        `TimeoutError` if the server never closes it. Either way, the watch
        is reopened from the last resource version seen, after a short pause
        if the stream delivered no events. If that resource version is too old
        to still be known to Kubernetes, the API call returns a 410 error and
        the watch is restarted without a resource version, which may miss
        events that arrived in between.

        Yields
        ------
        WatchEvent
            Parsed event.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server during the
            watch.
        """
        args = self._args.copy()
        while True:
            seen_event = False
            try:
                async with self._watch.stream(self._method, **args) as stream:
                    async for event in stream:
                        seen_event = True
                        parsed = WatchEvent.from_event(event, self._type)
                        version = _resource_version(event)
                        if version:
                            args["resource_version"] = version
                        yield parsed
            except TimeoutError:
                msg = "Watch stream was not closed by server, reopening"
                self._logger.warning(msg, kind=self._kind)
            except ApiException as e:
                if e.status != 410:
                    raise KubernetesError.from_exception(
                        "Error watching objects",
                        e,
                        kind=self._kind,
                        namespace=self._namespace,
                    ) from e
                if "resource_version" in args:
                    version = args.pop("resource_version")
                    msg = f"Resource version {version} expired, retrying watch"
                    self._logger.info(msg)
                else:
                    # Kubernetes may return 410 without a resource version
                    # after long gaps between events.
                    msg = "Watch expired (no resource version), retrying"
                    self._logger.info(msg)
                continue
            if not seen_event:
                await asyncio.sleep(self._retry_delay.total_seconds())


def _resource_version(event: dict[str, Any]) -> str | None:
    """Extract the resource version of the object in a watch event."""
    raw = event.get("raw_object") or {}
    return raw.get("metadata", {}).get("resourceVersion")
