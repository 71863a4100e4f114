"""Global configuration data structures and loading.

Provides immutable global config data loaded from ~/.cowpatch/config.toml.
The config is loaded once at the CLI entry point and stored in CowpatchContext.
A missing file means defaults; a malformed file is a ConfigError.
"""

import tomllib
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path

import tomlkit

from cowpatch.core.constants import DEFAULT_PATCHES_REMOTE
from cowpatch.core.errors import ConfigError

DEFAULT_VERIFIED_SOURCE = "drama-haus/hyperfy_core_overwrites/repos.json"

CONFIG_KEYS = ("canonical_url", "verified_source", "default_remote")


@dataclass(frozen=True)
class GlobalConfig:
    """Immutable global configuration data.

    Attributes:
        canonical_url: URL of the upstream repository patches target. When origin
            points elsewhere, a remote with this URL is used as the base remote.
        verified_source: `owner/repo/path` of the JSON allow-list of verified
            patch repositories.
        default_remote: Remote suggested for releases when none is configured.
    """

    canonical_url: str | None = None
    verified_source: str = DEFAULT_VERIFIED_SOURCE
    default_remote: str = DEFAULT_PATCHES_REMOTE

    def with_value(self, key: str, value: str) -> "GlobalConfig":
        """Return a copy with one key replaced.

        Raises:
            ConfigError: If key is not a known config key
        """
        if key not in CONFIG_KEYS:
            raise ConfigError(Path("config.toml"), f"unknown key '{key}'")
        return replace(self, **{key: value})


class ConfigStore(ABC):
    """Abstract interface for global config persistence.

    Provides dependency injection for global config access, enabling
    in-memory implementations for tests without touching the filesystem.
    """

    @abstractmethod
    def exists(self) -> bool:
        """Check if global config exists."""
        ...

    @abstractmethod
    def load(self) -> GlobalConfig:
        """Load global config, falling back to defaults when absent.

        Raises:
            ConfigError: If the config file is malformed
        """
        ...

    @abstractmethod
    def save(self, config: GlobalConfig) -> None:
        """Persist global config."""
        ...

    @abstractmethod
    def path(self) -> Path:
        """Get the path to the global config file (for messages and debugging)."""
        ...


class FilesystemConfigStore(ConfigStore):
    """Production implementation that reads/writes ~/.cowpatch/config.toml."""

    def __init__(self, config_path: Path | None = None) -> None:
        self._config_path = config_path

    def exists(self) -> bool:
        return self.path().exists()

    def load(self) -> GlobalConfig:
        config_path = self.path()
        if not config_path.exists():
            return GlobalConfig()

        try:
            data = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(config_path, str(e)) from e

        for key, value in data.items():
            if key not in CONFIG_KEYS:
                raise ConfigError(config_path, f"unknown key '{key}'")
            if not isinstance(value, str):
                raise ConfigError(config_path, f"'{key}' must be a string")

        defaults = GlobalConfig()
        return GlobalConfig(
            canonical_url=data.get("canonical_url") or None,
            verified_source=data.get("verified_source", defaults.verified_source),
            default_remote=data.get("default_remote", defaults.default_remote),
        )

    def save(self, config: GlobalConfig) -> None:
        """Save global config, preserving comments and formatting of an existing file."""
        config_path = self.path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        if config_path.exists():
            doc = tomlkit.parse(config_path.read_text(encoding="utf-8"))
        else:
            doc = tomlkit.document()
            doc.add(tomlkit.comment("Global cowpatch configuration"))

        if config.canonical_url is not None:
            doc["canonical_url"] = config.canonical_url
        elif "canonical_url" in doc:
            del doc["canonical_url"]
        doc["verified_source"] = config.verified_source
        doc["default_remote"] = config.default_remote

        config_path.write_text(tomlkit.dumps(doc), encoding="utf-8")

    def path(self) -> Path:
        if self._config_path is not None:
            return self._config_path
        return Path.home() / ".cowpatch" / "config.toml"


class InMemoryConfigStore(ConfigStore):
    """Test implementation that stores config in memory without touching filesystem."""

    def __init__(self, config: GlobalConfig | None = None) -> None:
        """Initialize in-memory config store.

        Args:
            config: Initial config state (None = config doesn't exist)
        """
        self._config = config
        self._saved: list[GlobalConfig] = []

    @property
    def saved(self) -> list[GlobalConfig]:
        """Configs passed to save(), in call order."""
        return list(self._saved)

    def exists(self) -> bool:
        return self._config is not None

    def load(self) -> GlobalConfig:
        if self._config is None:
            return GlobalConfig()
        return self._config

    def save(self, config: GlobalConfig) -> None:
        self._config = config
        self._saved.append(config)

    def path(self) -> Path:
        return Path("/test/config.toml")
