#!/usr/bin/env python3
"""Configuration loader for the Penci relay.

This module provides the configuration management for the relay server and
its HTTP client helpers. Values come from three layers, later ones winning:

- Built-in defaults
- config/server_config.json (deep merged)
- Environment variables, including a local .env file

Key Features:
- Hierarchical configuration management
- Deep merging of configuration files
- Environment variable overrides via python-dotenv
- Validation of the server section
"""
import os
import copy
import json
import logging
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .path_config import get_server_config_file

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "file": "relay_server.log"
    },
    "server": {
        "host": "0.0.0.0",
        "port": 8080,
        "cors_origins": "*",
        "socketio_path": "socket.io"
    },
    "client": {
        "base_url": "http://localhost:8080",
        "timeout": 5
    }
}

# (env var, section, key, converter); the first variable found wins per key
ENV_OVERRIDES = [
    ("RELAY_HOST", "server", "host", str),
    ("RELAY_PORT", "server", "port", int),
    ("SOCKET_PORT", "server", "port", int),
    ("LOG_LEVEL", "logging", "level", str),
    ("RELAY_URL", "client", "base_url", str),
]


class ConfigManager:
    def __init__(self, config_file: Optional[str] = None, use_env: bool = True):
        """Initialize the configuration manager.

        Args:
            config_file: JSON file to merge over the defaults. Defaults to
                config/server_config.json.
            use_env: Whether to apply environment variable overrides.
        """
        self._config: Dict[str, Any] = {}
        self._config_file = config_file or get_server_config_file()
        self._load_defaults()
        self._load_config_file()
        if use_env:
            self._load_env()
        self._validate_server_config(self._config["server"])

    def _load_defaults(self) -> None:
        """Load default configuration values."""
        self._config = copy.deepcopy(DEFAULT_CONFIG)

    def _load_config_file(self) -> None:
        """Merge the JSON configuration file, if present."""
        if not os.path.exists(self._config_file):
            logger.debug(f"Config file not found at {self._config_file}, using defaults")
            return
        try:
            with open(self._config_file, 'r') as f:
                file_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading config file {self._config_file}: {e}. Using defaults.")
            return
        if not isinstance(file_config, dict):
            logger.error(f"Config file {self._config_file} must contain a JSON object. Using defaults.")
            return
        self._merge_config(self._config, file_config)

    def _load_env(self) -> None:
        """Apply environment variable overrides (a .env file is loaded first)."""
        load_dotenv()
        applied = set()
        for var, section, key, convert in ENV_OVERRIDES:
            raw = os.getenv(var)
            if raw is None or (section, key) in applied:
                continue
            try:
                self.set(section, key, convert(raw))
            except ValueError:
                raise ValueError(f"Invalid value for {var}: {raw!r}") from None
            applied.add((section, key))

    def _merge_config(self, base: Dict, update: Dict) -> None:
        """
        Recursively merge two configuration dictionaries.
        Args:
            base: Base configuration dictionary
            update: Dictionary with updates to merge
        """
        for key, value in update.items():
            if (
                key in base and
                isinstance(base[key], dict) and
                isinstance(value, dict)
            ):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def _validate_server_config(self, config: Dict[str, Any]) -> None:
        """Validate server configuration"""
        required = {"host", "port"}
        if not all(k in config for k in required):
            raise ValueError(f"Missing required server config keys: {required}")

        port = config["port"]
        if not isinstance(port, int) or isinstance(port, bool):
            raise ValueError("Server port must be an integer")
        if not 1 <= port <= 65535:
            raise ValueError("Server port must be between 1 and 65535")

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.
        Args:
            section: Configuration section
            key: Configuration key
            default: Default value if not found
        Returns:
            Configuration value or default
        """
        try:
            return self._config[section][key]
        except KeyError:
            return default

    def set(self, section: str, key: str, value: Any) -> None:
        """
        Set a configuration value.
        Args:
            section: Configuration section
            key: Configuration key
            value: Value to set
        """
        if section not in self._config:
            self._config[section] = {}
        self._config[section][key] = value

    @property
    def config(self) -> Dict[str, Any]:
        """Get a copy of the complete configuration dictionary."""
        return copy.deepcopy(self._config)


_config: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Return the process configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = ConfigManager()
    return _config
