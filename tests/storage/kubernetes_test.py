"""Tests for the Kubernetes storage layer."""

from __future__ import annotations

import asyncio
from contextlib import suppress
from datetime import timedelta
from typing import Any

import pytest
import structlog
from kubernetes_asyncio.client import ApiClient, ApiException
from safir.testing.kubernetes import MockKubernetesApi

from gameroute.constants import (
    GAMESERVER_GROUP,
    GAMESERVER_PLURAL,
    GAMESERVER_VERSION,
)
from gameroute.exceptions import KubernetesError
from gameroute.models.domain.gameserver import GameServer
from gameroute.services.builder.service import ServiceBuilder
from gameroute.storage.kubernetes.creator import (
    EndpointsStorage,
    ServiceStorage,
)
from gameroute.storage.kubernetes.custom import GameServerStorage
from gameroute.storage.kubernetes.watcher import KubernetesWatcher
from gameroute.timeout import Timeout

from ..support.kubernetes import (
    MockEndpoints,
    create_gameserver,
    make_gameserver,
)


def make_timeout() -> Timeout:
    return Timeout("Test operation", timedelta(seconds=10))


@pytest.mark.asyncio
async def test_service_storage(mock_kubernetes: MockKubernetesApi) -> None:
    logger = structlog.get_logger(__name__)
    gameserver = GameServer.from_object(make_gameserver("gs-0"))
    service = ServiceBuilder(logger).build(gameserver)
    async with ApiClient() as api_client:
        storage = ServiceStorage(api_client, logger)

        assert await storage.read("gs-0", "games", make_timeout()) is None
        timeout = make_timeout()
        assert await storage.create("games", service, timeout)
        stored = await storage.read("gs-0", "games", make_timeout())
        assert stored
        assert stored.spec.selector == {"OwningGameServer": "gs-0"}

        assert not await storage.create(
            "games", service, make_timeout(), exists_ok=True
        )
        with pytest.raises(KubernetesError) as excinfo:
            await storage.create("games", service, make_timeout())
        assert excinfo.value.status == 409


@pytest.mark.asyncio
async def test_endpoints_storage(
    mock_kubernetes: MockKubernetesApi, mock_endpoints: MockEndpoints
) -> None:
    logger = structlog.get_logger(__name__)
    async with ApiClient() as api_client:
        storage = EndpointsStorage(api_client, logger)

        assert await storage.read("gs-0", "games", make_timeout()) is None
        mock_endpoints.set_ready("games", "gs-0")
        endpoints = await storage.read("gs-0", "games", make_timeout())
        assert endpoints
        assert endpoints.subsets[0].addresses[0].ip == "10.0.0.5"


@pytest.mark.asyncio
async def test_gameserver_storage(
    mock_kubernetes: MockKubernetesApi,
) -> None:
    logger = structlog.get_logger(__name__)
    await create_gameserver(mock_kubernetes, make_gameserver("gs-0"))
    await create_gameserver(mock_kubernetes, make_gameserver("gs-1"))
    async with ApiClient() as api_client:
        storage = GameServerStorage(api_client, logger)

        gameserver = await storage.read_gameserver(
            "gs-0", "games", make_timeout()
        )
        assert gameserver
        assert gameserver.metadata.namespace == "games"
        assert gameserver.metadata.name == "gs-0"
        assert not await storage.read_gameserver(
            "gs-2", "games", make_timeout()
        )

        objs = await storage.list("games", make_timeout())
        names = sorted(o["metadata"]["name"] for o in objs["items"])
        assert names == ["gs-0", "gs-1"]

        def callback(method: str, *args: Any) -> None:
            if method == "get_namespaced_custom_object":
                raise ApiException(status=403, reason="Forbidden")

        mock_kubernetes.error_callback = callback
        with pytest.raises(KubernetesError) as excinfo:
            await storage.read_gameserver("gs-0", "games", make_timeout())
        assert str(excinfo.value) == (
            "Error reading object (GameServer games/gs-0, status 403)"
            ": Forbidden"
        )


@pytest.mark.asyncio
async def test_watch_reopens_stream(
    mock_kubernetes: MockKubernetesApi,
) -> None:
    logger = structlog.get_logger(__name__)
    list_method = mock_kubernetes.list_namespaced_custom_object
    calls: list[dict[str, Any]] = []

    async def record_list(*args: Any, **kwargs: Any) -> Any:
        calls.append(kwargs)
        return await list_method(*args, **kwargs)

    watcher = KubernetesWatcher(
        method=record_list,
        object_type=dict[str, Any],
        kind="GameServer",
        namespace="games",
        group=GAMESERVER_GROUP,
        version=GAMESERVER_VERSION,
        plural=GAMESERVER_PLURAL,
        stream_timeout=timedelta(seconds=1),
        retry_delay=timedelta(seconds=0),
        logger=logger,
    )
    events = watcher.watch()
    try:
        first = asyncio.create_task(anext(events))
        async with asyncio.timeout(5):
            while not calls:
                await asyncio.sleep(0.01)
        await asyncio.sleep(0.1)
        obj = make_gameserver("gs-0")
        obj["metadata"]["resourceVersion"] = "1"
        await create_gameserver(mock_kubernetes, obj)
        async with asyncio.timeout(5):
            event = await first
        assert event.object["metadata"]["name"] == "gs-0"
        version = event.object["metadata"]["resourceVersion"]

        # Each stream is bounded on both the server and the client side.
        assert calls[0]["timeout_seconds"] == 1
        assert calls[0]["_request_timeout"] == 31.0
        assert "resource_version" not in calls[0]

        # Once the server closes the stream, the watch is reopened from the
        # last resource version seen.
        second = asyncio.create_task(anext(events))
        async with asyncio.timeout(5):
            while len(calls) < 2:
                await asyncio.sleep(0.01)
        second.cancel()
        with suppress(asyncio.CancelledError, StopAsyncIteration):
            await second
        assert calls[1]["resource_version"] == version
        assert calls[1]["timeout_seconds"] == 1
    finally:
        await events.aclose()
        await watcher.close()
