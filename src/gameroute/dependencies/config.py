"""Config dependency."""

import os
from pathlib import Path

from ..config import Config
from ..constants import CONFIGURATION_PATH, CONFIGURATION_PATH_ENV_VAR

__all__ = ["ConfigDependency", "config_dependency"]


class ConfigDependency:
    """Dependency to manage a cached controller configuration.

    The controller configuration is read on first request, cached, and
    returned to all dependency callers unless `set_path` is called to change
    the configuration. If the configuration file does not exist, the
    configuration is taken entirely from the environment.

    Parameters
    ----------
    path
        Path to the controller configuration. Defaults to the value of
        ``GAMEROUTE_CONFIG_PATH`` or, if that is not set, the standard
        location.
    """

    def __init__(self, path: Path | None = None) -> None:
        if not path:
            env_path = os.getenv(CONFIGURATION_PATH_ENV_VAR)
            path = Path(env_path) if env_path else CONFIGURATION_PATH
        self._path = path
        self._config: Config | None = None

    async def __call__(self) -> Config:
        return self.config

    @property
    def config(self) -> Config:
        """Load configuration if needed and return it.

        Returns
        -------
        Config
            Controller configuration.
        """
        if self._config is None:
            self._config = self._load(self._path)
        return self._config

    def set_path(self, path: Path) -> None:
        """Change the configuration path and reload.

        Parameters
        ----------
        path
            New configuration path.
        """
        self._path = path
        self._config = self._load(path)

    def _load(self, path: Path) -> Config:
        if path.exists():
            return Config.from_file(path)
        return Config()


config_dependency = ConfigDependency()
"""The dependency that will return the controller configuration."""
