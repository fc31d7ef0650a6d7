"""Tests for configuration parsing."""

from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError
from safir.logging import LogLevel, Profile

from gameroute.config import Config, RoutingConfig

from .support.config import config_path


def test_from_file() -> None:
    config = Config.from_file(config_path("standard"))

    assert config.host == "games.example.com"
    assert config.log_level == LogLevel.DEBUG
    assert config.profile == Profile.development
    assert config.reconcile_timeout == timedelta(seconds=10)
    assert config.watch_namespace == "games"
    assert config.workers == 2
    assert config.routing == RoutingConfig(
        host="games.example.com",
        middleware_name="strip-prefix",
        middleware_namespace="traefik",
        non_tls_entry_point="web",
        tls_entry_point="websecure",
    )
    assert config.routing.entry_points == ["web", "websecure"]


def test_tls_only() -> None:
    config = Config.from_file(config_path("tls-only"))

    assert config.routing.middleware_namespace is None
    assert config.routing.entry_points == ["websecure"]
    assert config.reconcile_timeout == timedelta(seconds=30)


def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DNS_NAME", "games.example.org")
    monkeypatch.setenv("MIDDLEWARE_NAME", "strip")
    monkeypatch.setenv("MIDDLEWARE_NAMESPACE", "")
    monkeypatch.setenv("NON_TLS_ENTRYPOINT", "web")
    monkeypatch.setenv("GAMEROUTE_WORKERS", "8")
    config = Config()

    assert config.host == "games.example.org"
    assert config.workers == 8
    assert config.routing == RoutingConfig(
        host="games.example.org",
        middleware_name="strip",
        non_tls_entry_point="web",
    )
    assert config.routing.entry_points == ["web"]

    monkeypatch.setenv("GAMEROUTE_HOST", "games.example.net")
    assert Config().host == "games.example.net"


def test_missing_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DNS_NAME", "games.example.org")
    monkeypatch.setenv("MIDDLEWARE_NAME", "strip")
    with pytest.raises(ValidationError):
        Config()

    monkeypatch.setenv("TLS_ENTRYPOINT", "websecure")
    monkeypatch.delenv("MIDDLEWARE_NAME")
    with pytest.raises(ValidationError):
        Config()

    monkeypatch.setenv("MIDDLEWARE_NAME", "strip")
    assert Config().routing.entry_points == ["websecure"]


def test_routing_validation() -> None:
    with pytest.raises(ValidationError):
        RoutingConfig(host="games.example.com", middleware_name="strip")
    with pytest.raises(ValidationError):
        RoutingConfig(
            host="games.example.com",
            middleware_name="",
            tls_entry_point="websecure",
        )
