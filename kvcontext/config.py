from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import toml

import kvcontext._globals as _globals
from kvutil.error_handling import ConfigurationError
from kvutil.fileio import FileIO


class Settings:
    """
    Loads the optional TOML settings file and overlays it on the built-in defaults.

    Recognised sections are [workflow] (location, settle_delay_ms, authority_host)
    and [logging] (level, dir). Anything else in the file is ignored.
    """

    @staticmethod
    def load(path: Optional[Path] = None) -> dict:
        """
        Args:
            path (Path): Settings file. Defaults to ./kvsample_settings.toml.

        Returns:
            dict: {"workflow": {...}, "logging": {...}} with defaults filled in.

        Raises:
            ConfigurationError: If the file exists but is not valid TOML.
        """
        path = Path(path) if path else _globals.GLOBAL_CFG_FILE
        merged = {section: dict(values) for section, values in _globals.SETTINGS_DEFAULT.items()}

        if not path.exists():
            return merged

        try:
            data = FileIO.read(path)
        except (toml.TomlDecodeError, ValueError) as e:
            raise ConfigurationError(f"[Settings] Could not parse settings file {path}: {e}") from e

        for section, defaults in merged.items():
            overrides = data.get(section) or {}
            if not isinstance(overrides, dict):
                raise ConfigurationError(f"[Settings] Section [{section}] in {path} must be a table")
            for key in defaults:
                if key in overrides:
                    defaults[key] = overrides[key]

        return merged


@dataclass(frozen=True)
class WorkflowConfig:
    """
    Immutable identifiers and settings for one workflow run.

    Built once at process entry and passed into the workflow; nothing reads the
    environment after this point.
    """
    client_id: str
    domain: str
    secret: str
    subscription_id: str
    object_id: Optional[str] = None
    object_id_for_keyvault: Optional[str] = None
    keyvault_sp: Optional[str] = None

    location: str = _globals.DEFAULT_LOCATION
    settle_delay_ms: int = _globals.DEFAULT_SETTLE_DELAY_MS
    authority_host: str = _globals.DEFAULT_AUTHORITY_HOST

    def __repr__(self) -> str:
        return (
            f"WorkflowConfig(client_id={self.client_id!r}, domain={self.domain!r}, secret='***', "
            f"subscription_id={self.subscription_id!r}, location={self.location!r}, "
            f"settle_delay_ms={self.settle_delay_ms!r})"
        )

    @property
    def authority(self) -> str:
        return f"{self.authority_host.rstrip('/')}/{self.domain}"

    def missing(self) -> list:
        fields = {
            _globals.CLIENT_ID: self.client_id,
            _globals.DOMAIN: self.domain,
            _globals.APPLICATION_SECRET: self.secret,
            _globals.AZURE_SUBSCRIPTION_ID: self.subscription_id,
        }
        return [name for name, value in fields.items() if not value]

    def validate(self) -> "WorkflowConfig":
        """
        Raises:
            ConfigurationError: Naming every mandatory value that is empty.
        """
        missing = self.missing()
        if missing:
            raise ConfigurationError.for_missing(missing)
        try:
            delay = int(self.settle_delay_ms)
        except (TypeError, ValueError):
            raise ConfigurationError(f"[WorkflowConfig] settle_delay_ms must be an integer, got {self.settle_delay_ms!r}")
        if delay < 0:
            raise ConfigurationError(f"[WorkflowConfig] settle_delay_ms must not be negative, got {delay}")
        return self

    def with_overrides(self, **overrides: Any) -> "WorkflowConfig":
        """Returns a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, env: Mapping[str, str], settings: Optional[Mapping[str, Any]] = None) -> "WorkflowConfig":
        """
        Builds and validates a config from an environment mapping.

        Args:
            env (Mapping[str, str]): Usually EnvLoader.load_env().
            settings (Mapping): Output of Settings.load(); defaults apply when omitted.

        Raises:
            ConfigurationError: If any of the four mandatory variables is empty or unset.
        """
        workflow = dict((settings or _globals.SETTINGS_DEFAULT).get("workflow", {}))

        missing = [key for key in _globals.REQUIRED_ENV if not env.get(key)]
        if missing:
            raise ConfigurationError.for_missing(missing)

        config = cls(
            client_id=env[_globals.CLIENT_ID],
            domain=env[_globals.DOMAIN],
            secret=env[_globals.APPLICATION_SECRET],
            subscription_id=env[_globals.AZURE_SUBSCRIPTION_ID],
            object_id=env.get(_globals.OBJECT_ID) or None,
            object_id_for_keyvault=env.get(_globals.OBJECT_ID_KEYVAULT_OPERATIONS) or None,
            keyvault_sp=env.get(_globals.SP_KEYVAULT_OPERATIONS) or None,
            location=workflow.get("location", _globals.DEFAULT_LOCATION),
            settle_delay_ms=workflow.get("settle_delay_ms", _globals.DEFAULT_SETTLE_DELAY_MS),
            authority_host=workflow.get("authority_host", _globals.DEFAULT_AUTHORITY_HOST),
        )
        return config.validate()
