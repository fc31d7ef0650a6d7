"""Global constants."""

from datetime import timedelta
from pathlib import Path

__all__ = [
    "CONFIGURATION_PATH",
    "CONFIGURATION_PATH_ENV_VAR",
    "DISPATCH_BACKOFF_BASE",
    "DISPATCH_BACKOFF_MAX",
    "GAMESERVER_GROUP",
    "GAMESERVER_KIND",
    "GAMESERVER_PLURAL",
    "GAMESERVER_VERSION",
    "INGRESSROUTE_GROUP",
    "INGRESSROUTE_KIND",
    "INGRESSROUTE_PLURAL",
    "INGRESSROUTE_VERSION",
    "KUBERNETES_REQUEST_TIMEOUT",
    "READINESS_REQUEUE_DELAY",
    "SELECTOR_LABEL",
    "SUPPORTED_PROTOCOLS",
    "WATCH_RESTART_DELAY",
    "WATCH_RETRY_DELAY",
    "WATCH_STREAM_TIMEOUT",
    "WATCH_TIMEOUT_GRACE",
]

CONFIGURATION_PATH = Path("/etc/gameroute/config.yaml")
"""Default path to controller configuration.

If no file exists at this path, configuration is taken entirely from the
environment.
"""

CONFIGURATION_PATH_ENV_VAR = "GAMEROUTE_CONFIG_PATH"
"""Environment variable that overrides the configuration path."""

DISPATCH_BACKOFF_BASE = timedelta(seconds=1)
"""Delay before retrying a game server whose reconciliation failed.

Doubled for each consecutive failure of the same game server.
"""

DISPATCH_BACKOFF_MAX = timedelta(minutes=5)
"""Upper limit on the delay before retrying a failed reconciliation."""

GAMESERVER_GROUP = "mps.playfab.com"
"""API group of ``GameServer`` objects."""

GAMESERVER_KIND = "GameServer"
"""Kind of ``GameServer`` objects."""

GAMESERVER_PLURAL = "gameservers"
"""API plural of ``GameServer`` objects."""

GAMESERVER_VERSION = "v1alpha1"
"""API version of ``GameServer`` objects."""

INGRESSROUTE_GROUP = "traefik.containo.us"
"""API group of Traefik ``IngressRoute`` objects."""

INGRESSROUTE_KIND = "IngressRoute"
"""Kind of Traefik ``IngressRoute`` objects."""

INGRESSROUTE_PLURAL = "ingressroutes"
"""API plural of Traefik ``IngressRoute`` objects."""

INGRESSROUTE_VERSION = "v1alpha1"
"""API version of Traefik ``IngressRoute`` objects."""

KUBERNETES_REQUEST_TIMEOUT = timedelta(seconds=30)
"""How long to wait for one-off sequences of Kubernetes API calls.

Used by the status route, which is not driven by the dispatcher and therefore
does not get the configured reconcile timeout.
"""

READINESS_REQUEUE_DELAY = timedelta(seconds=1)
"""How long to wait before checking a game server's endpoints again.

The endpoints of a freshly created service show up once the game server pod
passes its readiness checks, which is normally a matter of seconds.
"""

SELECTOR_LABEL = "OwningGameServer"
"""Pod label, set by the game server operator, naming the owning game server.

Services select game server pods using this label.
"""

SUPPORTED_PROTOCOLS = frozenset({"TCP"})
"""Container port protocols that Traefik HTTP routers can carry."""

WATCH_RESTART_DELAY = timedelta(seconds=5)
"""How long to pause before restarting a failed ``GameServer`` watch.

Doubled for each consecutive failure, up to the dispatcher backoff limit.
"""

WATCH_RETRY_DELAY = timedelta(seconds=1)
"""How long to pause before reopening a watch stream that saw no events."""

WATCH_STREAM_TIMEOUT = timedelta(minutes=5)
"""Server-side timeout of a single watch stream.

The watch is reopened from the last resource version seen when the stream
ends, so a connection that silently died is noticed within this interval.
"""

WATCH_TIMEOUT_GRACE = timedelta(seconds=30)
"""Extra time the client waits for a watch stream beyond its server timeout.

If the server never closes the stream, the client gives up after this
additional delay and reopens it.
"""
