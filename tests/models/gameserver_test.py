"""Tests for parsing game servers and deriving reconcile states."""

from __future__ import annotations

import pytest
from kubernetes_asyncio.client import (
    V1EndpointAddress,
    V1Endpoints,
    V1EndpointSubset,
    V1ObjectMeta,
    V1Service,
)

from gameroute.exceptions import InvalidGameServerError
from gameroute.models.domain.gameserver import (
    GameServer,
    GameServerIdentity,
    PortProtocol,
)
from gameroute.models.domain.kubernetes import endpoints_are_ready
from gameroute.models.domain.reconcile import ObservedState, ReconcileState

from ..support.kubernetes import make_gameserver


def test_parse() -> None:
    obj = make_gameserver(
        "gs-0",
        containers=[
            {
                "name": "server",
                "ports": [
                    {"name": "game", "containerPort": 7777},
                    {
                        "name": "voice",
                        "containerPort": 7778,
                        "protocol": "UDP",
                    },
                ],
            }
        ],
    )
    gameserver = GameServer.from_object(obj)

    identity = GameServerIdentity.from_object(obj)
    assert identity == GameServerIdentity("games", "gs-0")
    assert str(identity) == "games/gs-0"
    ports = gameserver.spec.template.spec.containers[0].ports
    assert ports[0].protocol == PortProtocol.TCP
    assert ports[1].protocol == PortProtocol.UDP
    expose = gameserver.spec.ports_to_expose[0]
    assert expose.container_name == "server"
    assert expose.port_name == "game"


def test_parse_invalid() -> None:
    obj = make_gameserver("gs-0")
    obj["spec"]["portsToExpose"] = [{"containerName": "server"}]

    with pytest.raises(InvalidGameServerError) as excinfo:
        GameServer.from_object(obj)
    assert excinfo.value.namespace == "games"
    assert excinfo.value.name == "gs-0"
    assert "portName" in excinfo.value.error


def test_owner_reference() -> None:
    gameserver = GameServer.from_object(make_gameserver("gs-0"))
    owner = gameserver.to_owner_reference()

    assert owner.api_version == "mps.playfab.com/v1alpha1"
    assert owner.kind == "GameServer"
    assert owner.name == "gs-0"
    assert owner.uid == "uid-gs-0"
    assert owner.controller is True
    assert owner.block_owner_deletion is True


def test_endpoints_ready() -> None:
    address = V1EndpointAddress(ip="10.0.0.5")
    metadata = V1ObjectMeta(name="gs-0", namespace="games")

    assert not endpoints_are_ready(None)
    assert not endpoints_are_ready(V1Endpoints(metadata=metadata))
    not_ready = V1EndpointSubset(not_ready_addresses=[address])
    endpoints = V1Endpoints(metadata=metadata, subsets=[not_ready])
    assert not endpoints_are_ready(endpoints)
    ready = V1EndpointSubset(addresses=[address])
    endpoints = V1Endpoints(metadata=metadata, subsets=[not_ready, ready])
    assert endpoints_are_ready(endpoints)


def test_observed_state() -> None:
    gameserver = GameServer.from_object(make_gameserver("gs-0"))
    metadata = V1ObjectMeta(name="gs-0", namespace="games")
    service = V1Service(metadata=metadata)
    subset = V1EndpointSubset(addresses=[V1EndpointAddress(ip="10.0.0.5")])
    endpoints = V1Endpoints(metadata=metadata, subsets=[subset])
    route = {"metadata": {"name": "gs-0", "namespace": "games"}}

    assert ObservedState().state == ReconcileState.WORKLOAD_MISSING
    observed = ObservedState(gameserver=gameserver)
    assert observed.state == ReconcileState.NO_SERVICE
    observed = ObservedState(gameserver=gameserver, service=service)
    assert observed.state == ReconcileState.NO_ENDPOINTS
    observed = ObservedState(
        gameserver=gameserver, service=service, endpoints=endpoints
    )
    assert observed.state == ReconcileState.NO_ROUTE
    observed = ObservedState(
        gameserver=gameserver,
        service=service,
        endpoints=endpoints,
        route=route,
    )
    assert observed.state == ReconcileState.CONVERGED
