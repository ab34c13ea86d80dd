import os
from pathlib import Path
from typing import Optional, Any

import kvcontext._globals as _globals
from kvutil.error_handling import ConfigurationError
from kvutil.fileio import FileIO


class EnvLoader:
    """
    Static utility for loading and caching environment variables.
    Merges an optional .env file under the live process environment; the process wins.
    """

    _env_path = None
    _cache = {}

    @staticmethod
    def load_env(path: Optional[Path] = None) -> dict:
        """
        Loads environment variables from an optional .env file plus os.environ.

        Args:
            path (Path): .env file to read. Defaults to ./.env. A missing file is not an error.

        Returns:
            dict: Merged environment, process values taking precedence over the file.
        """
        path = Path(path) if path else _globals.ENV

        if EnvLoader._cache and EnvLoader._env_path == path:
            return EnvLoader._cache

        file_env = {}
        if path.exists():
            file_env = FileIO.read(path)

        env_dict = {**file_env, **os.environ}

        EnvLoader._cache = env_dict
        EnvLoader._env_path = path
        return env_dict

    @staticmethod
    def get(key: str, required: bool = False) -> Any:
        """
        Retrieves a cached or system environment variable.

        Args:
            key (str): The environment variable name.
            required (bool): If True, raise when the value is empty or unset.

        Returns:
            Any: The resolved value, or None when absent and not required.

        Raises:
            ConfigurationError: If required and missing.
        """
        if not isinstance(key, str):
            raise TypeError("Key must be a string")

        env = EnvLoader._cache or EnvLoader.load_env(EnvLoader._env_path)
        value = env.get(key) or None
        if required and value is None:
            raise ConfigurationError.for_missing([key])
        return value

    @staticmethod
    def reset() -> None:
        EnvLoader._cache = {}
        EnvLoader._env_path = None


env = EnvLoader
