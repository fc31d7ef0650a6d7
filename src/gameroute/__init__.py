"""Traefik routes for PlayFab game servers running in Kubernetes."""

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]

try:
    __version__ = version("gameroute")
except PackageNotFoundError:
    # Package is not installed.
    __version__ = "0.0.0"
