"""Configuration management and validation service."""

import os
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

# Environment variables that override values from the file
ENV_OVERRIDES = {
    "INVESTPRO_DATABASE_URL": "database.url",
    "INVESTPRO_JWT_SECRET": "auth.jwt_secret",
}

DEFAULTS: Dict[str, Any] = {
    "database": {
        "url": "sqlite+aiosqlite:///./investpro.db",
        "timeout_seconds": 15,
    },
    "auth": {
        "jwt_secret": "change-me-in-production-investpro-hs256",
        "token_ttl_days": 7,
        "bcrypt_rounds": 12,
    },
    "sweep": {
        "enabled": True,
        "interval_seconds": 60,
    },
    "investments": {
        "refund_on_cancel": True,
    },
    "cors": {
        "allow_origins": ["http://localhost:8080", "http://localhost:5173"],
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
    },
}


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    path: str
    message: str


class ConfigValidationException(Exception):
    """Raised when config validation fails."""

    def __init__(self, errors: List[ConfigValidationError]):
        self.errors = errors
        messages = [f"{e.path}: {e.message}" for e in errors]
        super().__init__("Configuration validation failed:\n" + "\n".join(messages))


# Configuration schema definition
CONFIG_SCHEMA = {
    "server": {
        "type": "dict",
        "required": False,
        "properties": {
            "host": {"type": "str", "required": False},
            "port": {"type": "int", "required": False, "min": 1, "max": 65535},
        }
    },
    "database": {
        "type": "dict",
        "required": False,
        "properties": {
            "url": {"type": "str", "required": False},
            "timeout_seconds": {"type": "float", "required": False, "min": 1, "max": 300},
        }
    },
    "auth": {
        "type": "dict",
        "required": False,
        "properties": {
            "jwt_secret": {"type": "str", "required": False, "min_length": 16},
            "token_ttl_days": {"type": "int", "required": False, "min": 1, "max": 30},
            "bcrypt_rounds": {"type": "int", "required": False, "min": 4, "max": 16},
        }
    },
    "sweep": {
        "type": "dict",
        "required": False,
        "properties": {
            "enabled": {"type": "bool", "required": False},
            "interval_seconds": {"type": "int", "required": False, "min": 1, "max": 86400},
        }
    },
    "investments": {
        "type": "dict",
        "required": False,
        "properties": {
            "refund_on_cancel": {"type": "bool", "required": False},
        }
    },
    "cors": {
        "type": "dict",
        "required": False,
        "properties": {
            "allow_origins": {"type": "list", "required": False, "items": "str"},
        }
    },
    "logging": {
        "type": "dict",
        "required": False,
        "properties": {
            "level": {"type": "str", "required": False, "options": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
            "format": {"type": "str", "required": False},
        }
    },
}


class ConfigService:
    """Service for loading and validating configuration."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize config service.

        Args:
            config_path: Path to config file. If None, uses INVESTPRO_CONFIG
                or backend/config.yaml.
        """
        if config_path is None:
            config_path = os.environ.get("INVESTPRO_CONFIG")
        if config_path is None:
            backend_dir = Path(__file__).parent.parent.parent
            config_path = str(backend_dir / "config.yaml")

        self.config_path = config_path
        self._config: Dict[str, Any] = {}

    def load_and_validate(self) -> Dict[str, Any]:
        """Load and validate the configuration file.

        A missing file is not an error: defaults apply. Environment
        overrides are applied after validation of the file.

        Returns:
            Validated configuration dictionary.

        Raises:
            ConfigValidationException: If validation fails.
        """
        errors: List[ConfigValidationError] = []

        if not os.path.exists(self.config_path):
            logger.warning(f"Config file not found at {self.config_path}, using defaults")
            config = {}
        else:
            try:
                with open(self.config_path, 'r') as f:
                    config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                errors.append(ConfigValidationError(
                    path="",
                    message=f"Invalid YAML syntax: {str(e)}"
                ))
                raise ConfigValidationException(errors)

        if config is None:
            config = {}

        if not isinstance(config, dict):
            errors.append(ConfigValidationError(
                path="",
                message=f"Config must be a dictionary, got {type(config).__name__}"
            ))
            raise ConfigValidationException(errors)

        errors.extend(self._validate_dict(config, CONFIG_SCHEMA, ""))

        if errors:
            raise ConfigValidationException(errors)

        self._config = self._apply_env_overrides(config)
        logger.info(f"Configuration loaded and validated from {self.config_path}")
        return self._config

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        for env_name, dotted in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if not value:
                continue
            section, key = dotted.split(".")
            config.setdefault(section, {})[key] = value
            logger.info(f"Configuration value {dotted} taken from {env_name}")
        return config

    def _validate_dict(
        self,
        data: Dict[str, Any],
        schema: Dict[str, Any],
        path: str
    ) -> List[ConfigValidationError]:
        """Validate a dictionary against schema.

        Args:
            data: Data to validate
            schema: Schema to validate against
            path: Current path for error messages

        Returns:
            List of validation errors
        """
        errors = []

        for key in data:
            if key not in schema:
                errors.append(ConfigValidationError(
                    path=f"{path}.{key}" if path else key,
                    message=f"Unknown configuration key '{key}'"
                ))

        for key, prop_schema in schema.items():
            current_path = f"{path}.{key}" if path else key

            if key not in data:
                if prop_schema.get("required", False):
                    errors.append(ConfigValidationError(
                        path=current_path,
                        message="Required field missing"
                    ))
                continue

            errors.extend(self._validate_value(data[key], prop_schema, current_path))

        return errors

    def _validate_value(
        self,
        value: Any,
        schema: Dict[str, Any],
        path: str
    ) -> List[ConfigValidationError]:
        """Validate a single value against schema."""
        errors = []
        expected_type = schema.get("type")

        type_map = {
            "str": str,
            "int": int,
            "float": (int, float),
            "bool": bool,
            "list": list,
            "dict": dict,
        }

        if expected_type == "dict":
            if not isinstance(value, dict):
                errors.append(ConfigValidationError(
                    path=path,
                    message=f"Expected dict, got {type(value).__name__}"
                ))
                return errors

            if "properties" in schema:
                errors.extend(self._validate_dict(value, schema["properties"], path))
            return errors

        expected = type_map.get(expected_type)
        if expected is None:
            return errors

        # bool is a subclass of int; reject it for numeric fields
        if not isinstance(value, expected) or (expected_type in ("int", "float") and isinstance(value, bool)):
            errors.append(ConfigValidationError(
                path=path,
                message=f"Expected {expected_type}, got {type(value).__name__}"
            ))
            return errors

        if expected_type in ("int", "float"):
            if "min" in schema and value < schema["min"]:
                errors.append(ConfigValidationError(
                    path=path,
                    message=f"Value {value} is below minimum {schema['min']}"
                ))
            if "max" in schema and value > schema["max"]:
                errors.append(ConfigValidationError(
                    path=path,
                    message=f"Value {value} is above maximum {schema['max']}"
                ))

        if expected_type == "str" and "min_length" in schema and len(value) < schema["min_length"]:
            errors.append(ConfigValidationError(
                path=path,
                message=f"Must be at least {schema['min_length']} characters"
            ))

        if expected_type == "list" and "items" in schema:
            item_type = type_map[schema["items"]]
            for index, item in enumerate(value):
                if not isinstance(item, item_type):
                    errors.append(ConfigValidationError(
                        path=f"{path}[{index}]",
                        message=f"Expected {schema['items']}, got {type(item).__name__}"
                    ))

        if "options" in schema and value not in schema["options"]:
            errors.append(ConfigValidationError(
                path=path,
                message=f"Value '{value}' not in allowed options: {schema['options']}"
            ))

        return errors

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value, falling back to built-in defaults.

        Args:
            key: Dot-notation key (e.g., "sweep.interval_seconds")
            default: Value if neither the file nor DEFAULTS define the key

        Returns:
            Configuration value
        """
        for source in (self._config, DEFAULTS):
            value = source
            found = True
            for k in key.split("."):
                if isinstance(value, dict) and k in value:
                    value = value[k]
                else:
                    found = False
                    break
            if found:
                return value
        return default


# Global config service instance
config_service = ConfigService()
