# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for codemesh."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .models import Granularity

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".codemesh.yml"


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for codemesh.

    Loads configuration from .codemesh.yml with validation and defaults.
    Unknown keys and invalid values are logged and ignored unless ``strict``.
    """

    DEFAULTS = {
        "database_path": "codemesh.db",
        "granularity": Granularity.MEDIUM,
        "include_comments": False,
        "supported_extensions": [".ts", ".tsx", ".js", ".jsx", ".css", ".scss", ".html", ".py"],
        "ignored_directories": [
            "node_modules",
            "dist",
            "build",
            ".git",
            ".vscode",
            "coverage",
            "tmp",
            "temp",
            ".next",
            ".nuxt",
            "__pycache__",
            ".venv",
        ],
        "default_query_limit": 100,
        "max_file_size_kb": 1024,
    }

    def __init__(self, config_path: Optional[Path] = None, strict: bool = False):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses ./.codemesh.yml
            strict: Raise ConfigurationError on malformed files, unknown keys and
                invalid values instead of falling back to defaults.
        """
        if config_path is None:
            config_path = Path.cwd() / CONFIG_FILENAME

        self.config_path = Path(config_path)
        self.strict = strict
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _defaults(self) -> Dict[str, Any]:
        # Lists are copied so callers cannot mutate DEFAULTS
        return {
            key: list(value) if isinstance(value, list) else value
            for key, value in self.DEFAULTS.items()
        }

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self._defaults()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                self._config = self._defaults()
                return

            if not isinstance(loaded_config, dict):
                if self.strict:
                    raise ConfigurationError(
                        f"Configuration file must contain a YAML dictionary, "
                        f"got {type(loaded_config)}"
                    )
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                self._config = self._defaults()
                return

            self._config = self._defaults()
            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            if self.strict:
                raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()
        except OSError as e:
            logger.warning(
                f"Error reading configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                if self.strict:
                    raise ConfigurationError(f"Unknown configuration parameter '{key}'")
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                if self.strict:
                    raise ConfigurationError(f"Invalid value for '{key}': {value}")
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            if key == "supported_extensions":
                value = [ext if ext.startswith(".") else f".{ext}" for ext in value]
            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        # bool is a subclass of int; reject it for numeric settings
        if expected_type is int and isinstance(value, bool):
            return False
        if not isinstance(value, expected_type):
            return False

        if key in ("default_query_limit", "max_file_size_kb"):
            return bool(value > 0)
        elif key == "granularity":
            return value in Granularity.ALL
        elif key == "database_path":
            return bool(value.strip())
        elif key in ("supported_extensions", "ignored_directories"):
            return all(isinstance(item, str) and item for item in value)

        return True

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._config)

    # Property accessors for all configuration values
    @property
    def database_path(self) -> str:
        """Path of the SQLite database file, or ":memory:"."""
        value = self._config["database_path"]
        assert isinstance(value, str)
        return value

    @property
    def granularity(self) -> str:
        """Default parse granularity (coarse, medium or fine)."""
        value = self._config["granularity"]
        assert isinstance(value, str)
        return value

    @property
    def include_comments(self) -> bool:
        """Whether comment nodes are kept in parsed graphs."""
        value = self._config["include_comments"]
        assert isinstance(value, bool)
        return value

    @property
    def supported_extensions(self) -> List[str]:
        """File extensions picked up by the project scanner."""
        value = self._config["supported_extensions"]
        assert isinstance(value, list)
        return value

    @property
    def ignored_directories(self) -> List[str]:
        """Directory names never descended into by the scanner."""
        value = self._config["ignored_directories"]
        assert isinstance(value, list)
        return value

    @property
    def default_query_limit(self) -> int:
        """Page size used when a query gives no limit."""
        value = self._config["default_query_limit"]
        assert isinstance(value, int)
        return value

    @property
    def max_file_size_kb(self) -> int:
        """Files larger than this are skipped during import."""
        value = self._config["max_file_size_kb"]
        assert isinstance(value, int)
        return value
