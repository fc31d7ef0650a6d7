"""Data types for interacting with Kubernetes."""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from kubernetes_asyncio.client import V1Endpoints, V1ObjectMeta

__all__ = [
    "KubernetesModel",
    "WatchEventType",
    "endpoints_are_ready",
]


class KubernetesModel(Protocol):
    """Protocol for Kubernetes object models.

    kubernetes-asyncio_ doesn't currently expose type information, so this
    tells mypy that all the object models we deal with will have a metadata
    attribute.
    """

    metadata: V1ObjectMeta


class WatchEventType(Enum):
    """Possible values of the ``type`` field of Kubernetes watch events."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


def endpoints_are_ready(endpoints: V1Endpoints | None) -> bool:
    """Check whether an endpoint set has at least one ready backend.

    Addresses that are not ready are listed separately under
    ``not_ready_addresses``, so a subset counts only if it has ready
    addresses.

    Parameters
    ----------
    endpoints
        Endpoints to check, or `None` if they do not exist.

    Returns
    -------
    bool
        `True` if at least one subset has a ready address, `False` otherwise.
    """
    if not endpoints or not endpoints.subsets:
        return False
    return any(subset.addresses for subset in endpoints.subsets)
