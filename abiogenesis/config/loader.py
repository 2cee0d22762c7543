"""
Configuration loading for ergo.

Precedence (highest first):
  1. environment — ANTHROPIC_API_KEY, ABIOGENESIS_USE_MOCK=1
  2. ~/.abiogenesis/config.toml
  3. defaults
"""

import logging
import os
import sys
import tomllib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TextIO

import tomli_w

from abiogenesis.exceptions import ConfigError

__all__ = [
    "Config",
    "ConfigPathProvider",
    "HomePathProvider",
    "StaticPathProvider",
    "ConfigLoader",
    "CONFIG_FILENAME",
    "LOG_FILENAME",
]

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.toml"
LOG_FILENAME    = "ergo.log"

API_KEY_ENV = "ANTHROPIC_API_KEY"
MOCK_ENV    = "ABIOGENESIS_USE_MOCK"


@dataclass
class Config:
    """
    anthropic_api_key — key for the generation service (None = not set)
    use_mock          — generate with the offline stub backend
    """
    anthropic_api_key: Optional[str] = None
    use_mock:          bool          = False

    def to_toml_dict(self) -> dict:
        data: dict = {}
        if self.anthropic_api_key:
            data["anthropic_api_key"] = self.anthropic_api_key
        return data


# ── Path providers ────────────────────────────────────────────────────────────

class ConfigPathProvider(ABC):
    @abstractmethod
    def get_base_dir(self) -> Path:
        """Directory holding config.toml and the log file."""
        ...


class HomePathProvider(ConfigPathProvider):
    def get_base_dir(self) -> Path:
        try:
            return Path.home() / ".abiogenesis"
        except RuntimeError as exc:
            raise ConfigError("Could not find home directory") from exc


class StaticPathProvider(ConfigPathProvider):
    def __init__(self, base_dir: Path) -> None:
        self._base_dir = Path(base_dir)

    def get_base_dir(self) -> Path:
        return self._base_dir


# ── Loader ────────────────────────────────────────────────────────────────────

class ConfigLoader:
    """Loads, saves and displays the configuration."""

    def __init__(self, path_provider: Optional[ConfigPathProvider] = None) -> None:
        self._paths = path_provider or HomePathProvider()

    def get_config_dir(self) -> Path:
        return self._paths.get_base_dir()

    def get_config_path(self) -> Path:
        return self.get_config_dir() / CONFIG_FILENAME

    def get_log_path(self) -> Path:
        return self.get_config_dir() / LOG_FILENAME

    def load_from_file(self) -> Config:
        """
        Read config.toml only (no environment overrides).

        Raises:
            ConfigError: the file is missing, unreadable or not valid TOML.
        """
        path = self.get_config_path()
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with path.open("rb") as fh:
                data = tomllib.load(fh)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(f"Cannot read {path}: {exc}") from exc

        api_key = data.get("anthropic_api_key")
        if api_key is not None and not isinstance(api_key, str):
            raise ConfigError(f"{path}: anthropic_api_key must be a string")
        logger.info("Loaded config from %s", path)
        return Config(anthropic_api_key=api_key)

    def load(self) -> Config:
        """Load with full precedence; a missing file means defaults."""
        if self.get_config_path().is_file():
            config = self.load_from_file()
        else:
            logger.info("No config file found, using defaults")
            config = Config()

        env_key = os.environ.get(API_KEY_ENV)
        if env_key:
            config.anthropic_api_key = env_key
        config.use_mock = os.environ.get(MOCK_ENV) == "1"
        return config

    def save(self, config: Config) -> None:
        path = self.get_config_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as fh:
                tomli_w.dump(config.to_toml_dict(), fh)
        except OSError as exc:
            raise ConfigError(f"Cannot write {path}: {exc}") from exc
        logger.info("Saved config to %s", path)

    def set_api_key(self, config: Config, api_key: str) -> None:
        config.anthropic_api_key = api_key
        self.save(config)
        logger.info("API key saved to config file")

    def show_config_info(self, out: Optional[TextIO] = None) -> None:
        out = out or sys.stdout
        path = self.get_config_path()
        out.write(f"Configuration file: {path}\n")
        if path.is_file():
            out.write("Status: Found\n")
            config = self.load_from_file()
            out.write(f"API Key: {'Set' if config.anthropic_api_key else 'Not set'}\n")
        else:
            out.write("Status: Not found (using defaults)\n")
        if os.environ.get(API_KEY_ENV):
            out.write(f"Environment: {API_KEY_ENV} is set (overrides the file)\n")
        out.write(f"Log file: {self.get_log_path()}\n")
        out.write("\nTo set your API key:\n")
        out.write("  ergo --set-api-key sk-ant-your-key-here\n")
        out.write(f"  or: export {API_KEY_ENV}=sk-ant-your-key-here\n")
