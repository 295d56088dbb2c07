"""Configuration management for Timeboard."""

import copy
import logging
import secrets
from pathlib import Path
from typing import Any, Optional

import yaml  # type: ignore[import-untyped]
from jsonschema import ValidationError, validate  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

_POSITIVE_INT = {"type": "integer", "minimum": 1}


class ConfigManager:
    """Manage application configuration."""

    DEFAULT_CONFIG = {
        "version": "1.0",
        "general": {
            "data_dir": "~/.timeboard/data",
            "log_level": "INFO",
            "default_member": None,
        },
        "team": {
            "members": [],
            "aliases": {"rahman": "Rehman"},
        },
        "ranking": {
            "entry_cap_seconds": 14400,
            "excluded_project_names": ["non-work-task"],
        },
        "timeline": {
            "hour_height": 72,
            "min_block_height": 24,
            "block_gap": 2,
        },
        "drag": {
            "hour_height": 56,
            "snap_minutes": 5,
            "min_entry_minutes": 15,
            "click_threshold_px": 3,
            "suppress_click_ms": 250,
        },
        "idempotency": {
            "success_ttl": 180,
            "failure_ttl": 120,
        },
        "snapshots": {
            "ttl_seconds": 600,
        },
        "api": {
            "enabled": False,
            "host": "localhost",
            "port": 8000,
            "workers": 1,
            "authentication": {
                "enabled": True,
                "token_expiry_hours": 24,
                "secret_key": None,
            },
            "cors": {
                "enabled": True,
                "origins": ["http://localhost:3000", "http://localhost:5173"],
            },
            "advanced": {
                "reload": False,
                "log_level": "info",
                "access_log": True,
            },
        },
    }

    CONFIG_SCHEMA = {
        "type": "object",
        "properties": {
            "version": {"type": "string"},
            "general": {
                "type": "object",
                "properties": {
                    "data_dir": {"type": "string"},
                    "log_level": {
                        "type": "string",
                        "enum": ["DEBUG", "INFO", "WARNING", "ERROR"],
                    },
                    "default_member": {"type": ["string", "null"]},
                },
            },
            "team": {
                "type": "object",
                "properties": {
                    "members": {"type": "array", "items": {"type": "string"}},
                    "aliases": {
                        "type": "object",
                        "additionalProperties": {"type": "string"},
                    },
                },
            },
            "ranking": {
                "type": "object",
                "properties": {
                    "entry_cap_seconds": _POSITIVE_INT,
                    "excluded_project_names": {"type": "array", "items": {"type": "string"}},
                },
            },
            "timeline": {
                "type": "object",
                "properties": {
                    "hour_height": {"type": "number", "exclusiveMinimum": 0},
                    "min_block_height": {"type": "number", "minimum": 0},
                    "block_gap": {"type": "number", "minimum": 0},
                },
            },
            "drag": {
                "type": "object",
                "properties": {
                    "hour_height": {"type": "number", "exclusiveMinimum": 0},
                    "snap_minutes": _POSITIVE_INT,
                    "min_entry_minutes": _POSITIVE_INT,
                    "click_threshold_px": {"type": "number", "minimum": 0},
                    "suppress_click_ms": {"type": "integer", "minimum": 0},
                },
            },
            "idempotency": {
                "type": "object",
                "properties": {
                    "success_ttl": {"type": "integer", "minimum": 30, "maximum": 3600},
                    "failure_ttl": {"type": "integer", "minimum": 30, "maximum": 3600},
                },
            },
            "snapshots": {
                "type": "object",
                "properties": {
                    "ttl_seconds": {"type": "integer", "minimum": 0},
                },
            },
            "api": {
                "type": "object",
                "properties": {
                    "enabled": {"type": "boolean"},
                    "host": {"type": "string"},
                    "port": {"type": "integer", "minimum": 1, "maximum": 65535},
                    "workers": {"type": "integer", "minimum": 1, "maximum": 16},
                    "authentication": {
                        "type": "object",
                        "properties": {
                            "enabled": {"type": "boolean"},
                            "token_expiry_hours": {
                                "type": "integer",
                                "minimum": 1,
                                "maximum": 8760,
                            },
                            "secret_key": {"type": ["string", "null"]},
                        },
                    },
                    "cors": {
                        "type": "object",
                        "properties": {
                            "enabled": {"type": "boolean"},
                            "origins": {
                                "type": "array",
                                "items": {"type": "string"},
                            },
                        },
                    },
                    "advanced": {
                        "type": "object",
                        "properties": {
                            "reload": {"type": "boolean"},
                            "log_level": {"type": "string"},
                            "access_log": {"type": "boolean"},
                        },
                    },
                },
            },
        },
        "required": ["version"],
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to config file. Defaults to ~/.timeboard/config.yml
        """
        if config_path is None:
            config_path = Path.home() / ".timeboard" / "config.yml"
        self.config_path = Path(config_path)
        self._config: dict[str, Any] = {}
        self._load_or_create()

    def _load_or_create(self) -> None:
        """Load existing config or create default."""
        if self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f) or {}
            self._config = self._merge_with_defaults(loaded_config)
            try:
                self.validate()
            except ValueError as e:
                backup_path = self.config_path.with_suffix(".yml.backup")
                self.config_path.rename(backup_path)
                self._config = copy.deepcopy(self.DEFAULT_CONFIG)
                self.save()
                logger.warning(f"Invalid config moved to {backup_path}")
                raise ValueError(
                    f"Config validation failed, backed up to {backup_path}. "
                    f"Using defaults. Error: {e}"
                )
        else:
            self._config = copy.deepcopy(self.DEFAULT_CONFIG)
            self.save()

    def _merge_with_defaults(self, config: dict[str, Any]) -> dict[str, Any]:
        result = copy.deepcopy(self.DEFAULT_CONFIG)
        self._deep_merge(result, config)
        return result

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> None:
        """Deep merge override into base dictionary (in-place)."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Example:
            >>> config.get('ranking.entry_cap_seconds')
            14400
            >>> config.get('nonexistent.key', 'default')
            'default'
        """
        value: Any = self._config
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
            if value is None:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Raises:
            ValueError: If configuration is invalid after setting
        """
        keys = key.split(".")
        config = self._config
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value
        self.validate()
        self.save()

    def validate(self) -> bool:
        """Validate configuration against schema.

        Raises:
            ValueError: If configuration is invalid
        """
        try:
            validate(instance=self._config, schema=self.CONFIG_SCHEMA)
            return True
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e.message}")

    def save(self) -> None:
        """Save configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self._config, f, default_flow_style=False, sort_keys=False, allow_unicode=True
            )

    def reset(self) -> None:
        """Reset to default configuration."""
        self._config = copy.deepcopy(self.DEFAULT_CONFIG)
        self.save()

    def to_dict(self) -> dict[str, Any]:
        """Get full configuration as a copy."""
        return copy.deepcopy(self._config)

    @property
    def data_dir(self) -> Path:
        """Expanded data directory path."""
        return Path(self.get("general.data_dir", "~/.timeboard/data")).expanduser()

    def ensure_api_secret_key(self) -> str:
        """Ensure API secret key exists, generate if needed."""
        secret_key: Optional[str] = self.get("api.authentication.secret_key")
        if not secret_key:
            secret_key = secrets.token_urlsafe(32)
            self.set("api.authentication.secret_key", secret_key)
        return secret_key
