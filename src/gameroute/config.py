"""Global configuration parsing."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Annotated, Self

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from safir.logging import LogLevel, Profile
from safir.pydantic import HumanTimedelta

__all__ = [
    "Config",
    "RoutingConfig",
]


class RoutingConfig(BaseModel):
    """Traefik settings shared by every ``IngressRoute`` the controller makes.

    Built once at startup from `Config` and never modified afterwards.
    """

    model_config = ConfigDict(frozen=True)

    host: Annotated[
        str,
        Field(
            title="External host name",
            description="Host name matched by every route",
            min_length=1,
        ),
    ]

    middleware_name: Annotated[
        str,
        Field(
            title="Middleware name",
            description="Traefik middleware attached to every route",
            min_length=1,
        ),
    ]

    middleware_namespace: Annotated[
        str | None,
        Field(
            title="Middleware namespace",
            description=(
                "Namespace of the Traefik middleware. If not set, Traefik"
                " looks for the middleware in the namespace of each route."
            ),
        ),
    ] = None

    non_tls_entry_point: Annotated[
        str | None, Field(title="Non-TLS Traefik entry point")
    ] = None

    tls_entry_point: Annotated[
        str | None, Field(title="TLS Traefik entry point")
    ] = None

    @model_validator(mode="after")
    def _validate_entry_points(self) -> Self:
        if not self.non_tls_entry_point and not self.tls_entry_point:
            msg = "At least one of the TLS or non-TLS entry points must be set"
            raise ValueError(msg)
        return self

    @property
    def entry_points(self) -> list[str]:
        """Configured entry points, non-TLS first."""
        entry_points = [self.non_tls_entry_point, self.tls_entry_point]
        return [e for e in entry_points if e]


class Config(BaseSettings):
    """Game server route controller configuration.

    Every setting can be given in the YAML configuration file (using the
    attribute name as the key) or in the environment. Environment variables
    use a ``GAMEROUTE_`` prefix, except that the Traefik settings also accept
    the unprefixed names used by earlier releases.
    """

    model_config = SettingsConfigDict(
        env_prefix="GAMEROUTE_", extra="forbid", populate_by_name=True
    )

    host: Annotated[
        str,
        Field(
            title="External host name",
            description=(
                "Externally visible DNS name of the Traefik ingress. Every"
                " route matches this host and a path prefix of the game"
                " server name."
            ),
            validation_alias=AliasChoices("GAMEROUTE_HOST", "DNS_NAME"),
            min_length=1,
        ),
    ]

    middleware_name: Annotated[
        str,
        Field(
            title="Traefik middleware name",
            description="Name of the middleware referenced by every route",
            validation_alias=AliasChoices(
                "GAMEROUTE_MIDDLEWARE_NAME", "MIDDLEWARE_NAME"
            ),
            min_length=1,
        ),
    ]

    middleware_namespace: Annotated[
        str | None,
        Field(
            title="Traefik middleware namespace",
            description=(
                "Namespace of the middleware. If not set, the middleware is"
                " looked up in the namespace of each game server."
            ),
            validation_alias=AliasChoices(
                "GAMEROUTE_MIDDLEWARE_NAMESPACE", "MIDDLEWARE_NAMESPACE"
            ),
        ),
    ] = None

    non_tls_entry_point: Annotated[
        str | None,
        Field(
            title="Non-TLS Traefik entry point",
            description=(
                "Entry point for plain HTTP traffic. At least one of this and"
                " ``tls_entry_point`` must be set."
            ),
            validation_alias=AliasChoices(
                "GAMEROUTE_NON_TLS_ENTRY_POINT", "NON_TLS_ENTRYPOINT"
            ),
        ),
    ] = None

    tls_entry_point: Annotated[
        str | None,
        Field(
            title="TLS Traefik entry point",
            description=(
                "Entry point for HTTPS traffic. At least one of this and"
                " ``non_tls_entry_point`` must be set."
            ),
            validation_alias=AliasChoices(
                "GAMEROUTE_TLS_ENTRY_POINT", "TLS_ENTRYPOINT"
            ),
        ),
    ] = None

    log_level: Annotated[
        LogLevel,
        Field(
            title="Log level",
            description="Python logging level",
            examples=[LogLevel.INFO],
        ),
    ] = LogLevel.INFO

    name: Annotated[
        str,
        Field(
            title="Name of application",
            description="Used when reporting problems to Slack",
        ),
    ] = "gameroute"

    path_prefix: Annotated[
        str, Field(title="URL prefix for controller API")
    ] = "/gameroute"

    profile: Annotated[
        Profile,
        Field(
            title="Application logging profile",
            description=(
                "``production`` uses JSON logging. ``development`` uses"
                " logging that may be easier for humans to read but that"
                " cannot be easily parsed by computers or Google Log Explorer."
            ),
            examples=[Profile.development],
        ),
    ] = Profile.production

    reconcile_timeout: Annotated[
        HumanTimedelta,
        Field(
            title="Reconcile timeout",
            description=(
                "Deadline for all of the Kubernetes API calls made while"
                " reconciling one game server"
            ),
        ),
    ] = timedelta(seconds=30)

    slack_webhook: Annotated[
        SecretStr | None,
        Field(
            title="Slack webhook for alerts",
            description=(
                "If set, uncaught exceptions while reconciling game servers"
                " will be reported to Slack via this webhook"
            ),
        ),
    ] = None

    watch_namespace: Annotated[
        str | None,
        Field(
            title="Namespace to watch",
            description=(
                "Only reconcile game servers in this namespace. If not set,"
                " game servers in all namespaces are reconciled."
            ),
        ),
    ] = None

    workers: Annotated[
        int,
        Field(
            title="Reconcile workers",
            description="Number of game servers reconciled concurrently",
            ge=1,
        ),
    ] = 4

    @model_validator(mode="after")
    def _validate_entry_points(self) -> Self:
        if not self.non_tls_entry_point and not self.tls_entry_point:
            msg = "At least one of the TLS or non-TLS entry points must be set"
            raise ValueError(msg)
        return self

    @property
    def routing(self) -> RoutingConfig:
        """Immutable Traefik settings for building routes."""
        return RoutingConfig(
            host=self.host,
            middleware_name=self.middleware_name,
            middleware_namespace=self.middleware_namespace or None,
            non_tls_entry_point=self.non_tls_entry_point or None,
            tls_entry_point=self.tls_entry_point or None,
        )

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Load the controller configuration from a YAML file.

        Settings missing from the file are taken from the environment.

        Parameters
        ----------
        path
            Path to the configuration file.
        """
        with path.open("r") as f:
            return cls(**(yaml.safe_load(f) or {}))
