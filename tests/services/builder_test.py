"""Tests for building game server services and routes."""

from __future__ import annotations

import structlog
from kubernetes_asyncio.client import V1ServicePort
from structlog.testing import capture_logs

from gameroute.config import RoutingConfig
from gameroute.models.domain.gameserver import GameServer
from gameroute.services.builder.ports import build_service_ports
from gameroute.services.builder.route import IngressRouteBuilder
from gameroute.services.builder.service import ServiceBuilder

from ..support.kubernetes import make_gameserver


def test_ports() -> None:
    logger = structlog.get_logger(__name__)
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
                    {"name": "query", "containerPort": 27015},
                ],
            },
            {
                "name": "sidecar",
                "ports": [{"name": "metrics", "containerPort": 9090}],
            },
        ],
        ports_to_expose=[
            {"containerName": "sidecar", "portName": "metrics"},
            {"containerName": "server", "portName": "voice"},
            {"containerName": "server", "portName": "missing"},
            {"containerName": "missing", "portName": "game"},
            {"containerName": "server", "portName": "game"},
        ],
    )
    gameserver = GameServer.from_object(obj)

    assert build_service_ports(gameserver, logger) == [
        V1ServicePort(name="metrics", port=9090, protocol="TCP"),
        V1ServicePort(name="game", port=7777, protocol="TCP"),
    ]


def test_ports_empty() -> None:
    logger = structlog.get_logger(__name__)
    obj = make_gameserver("gs-0", ports_to_expose=[])
    gameserver = GameServer.from_object(obj)

    assert build_service_ports(gameserver, logger) == []


def test_ports_unroutable() -> None:
    logger = structlog.get_logger(__name__)
    obj = make_gameserver(
        "gs-0",
        containers=[
            {
                "name": "server",
                "ports": [
                    {"name": "game", "containerPort": 7777, "protocol": "UDP"}
                ],
            }
        ],
        ports_to_expose=[{"containerName": "server", "portName": "game"}],
    )
    gameserver = GameServer.from_object(obj)

    with capture_logs() as logs:
        assert build_service_ports(gameserver, logger) == []
    warnings = [e["event"] for e in logs if e["log_level"] == "warning"]
    assert warnings == [
        "No routable ports to expose, service will be rejected"
    ]


def test_service() -> None:
    logger = structlog.get_logger(__name__)
    gameserver = GameServer.from_object(make_gameserver("gs-0"))
    service = ServiceBuilder(logger).build(gameserver)

    assert service.metadata.name == "gs-0"
    assert service.metadata.namespace == "games"
    assert service.metadata.owner_references == [
        gameserver.to_owner_reference()
    ]
    assert service.spec.selector == {"OwningGameServer": "gs-0"}
    assert service.spec.ports == [
        V1ServicePort(name="game", port=7777, protocol="TCP")
    ]

    # Building from the same game server always gives the same result.
    assert ServiceBuilder(logger).build(gameserver) == service


def test_route() -> None:
    logger = structlog.get_logger(__name__)
    config = RoutingConfig(
        host="games.example.com",
        middleware_name="strip-prefix",
        middleware_namespace="traefik",
        non_tls_entry_point="web",
        tls_entry_point="websecure",
    )
    obj = make_gameserver(
        "gs-0",
        containers=[
            {
                "name": "server",
                "ports": [
                    {"name": "game", "containerPort": 7777},
                    {"name": "query", "containerPort": 27015},
                ],
            }
        ],
        ports_to_expose=[
            {"containerName": "server", "portName": "game"},
            {"containerName": "server", "portName": "query"},
        ],
    )
    gameserver = GameServer.from_object(obj)
    service = ServiceBuilder(logger).build(gameserver)
    route = IngressRouteBuilder(config).build(gameserver, service)

    assert route["apiVersion"] == "traefik.containo.us/v1alpha1"
    assert route["kind"] == "IngressRoute"
    assert route["metadata"]["name"] == "gs-0"
    assert route["metadata"]["namespace"] == "games"
    owner = route["metadata"]["ownerReferences"][0]
    assert owner["apiVersion"] == "mps.playfab.com/v1alpha1"
    assert owner["kind"] == "GameServer"
    assert owner["name"] == "gs-0"
    assert owner["uid"] == "uid-gs-0"
    assert owner["controller"] is True
    assert owner["blockOwnerDeletion"] is True
    assert route["spec"] == {
        "entryPoints": ["web", "websecure"],
        "routes": [
            {
                "kind": "Rule",
                "match": (
                    "Host(`games.example.com`) && PathPrefix(`/gs-0`)"
                ),
                "middlewares": [
                    {"name": "strip-prefix", "namespace": "traefik"}
                ],
                "services": [
                    {"name": "gs-0", "port": 7777},
                    {"name": "gs-0", "port": 27015},
                ],
            }
        ],
    }


def test_route_defaults() -> None:
    logger = structlog.get_logger(__name__)
    config = RoutingConfig(
        host="games.example.com",
        middleware_name="strip-prefix",
        tls_entry_point="websecure",
    )
    gameserver = GameServer.from_object(make_gameserver("gs-1"))
    service = ServiceBuilder(logger).build(gameserver)
    route = IngressRouteBuilder(config).build(gameserver, service)

    assert route["spec"]["entryPoints"] == ["websecure"]
    assert route["spec"]["routes"][0]["middlewares"] == [
        {"name": "strip-prefix"}
    ]
    assert route["spec"]["routes"][0]["match"] == (
        "Host(`games.example.com`) && PathPrefix(`/gs-1`)"
    )
