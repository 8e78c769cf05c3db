"""
Config service - authoritative server configuration backed by a JSON file.

The ``logging`` and ``featureFlags`` sections are validated independently on
load: a bad section falls back to its compiled-in default without affecting
the other one. ``save`` validates the whole object before writing and only
swaps the in-memory copy after the file write succeeded, so readers never
see a partially applied configuration.
"""

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from pydantic import TypeAdapter, ValidationError

from core.persistence import (
    PersistenceError,
    SnapshotNotFoundError,
    decode_json,
    encode_json,
    read_snapshot,
    write_snapshot,
)
from models.server_config import (
    DEFAULT_FEATURE_FLAGS,
    FeatureFlags,
    LoggingConfig,
    ServerConfig,
    default_config,
)

logger = logging.getLogger(__name__)

# Config levels mapped to stdlib logging levels
PYTHON_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

_feature_flags_adapter = TypeAdapter(FeatureFlags)


class ConfigStoreError(Exception):
    """Base exception for config store errors."""

    pass


class ConfigValidationError(ConfigStoreError):
    """A configuration object failed validation; nothing was written."""

    pass


class ConfigPersistenceError(ConfigStoreError):
    """The config file could not be written; the in-memory config is unchanged."""

    pass


def apply_log_level(level: str, logger_name: Optional[str] = None) -> None:
    """Apply a config log level to a Python logger (root by default)."""
    logging.getLogger(logger_name).setLevel(PYTHON_LOG_LEVELS.get(level, logging.INFO))


class ConfigStore:
    """
    Owner of the in-memory server configuration.

    Args:
        config_path: Path of the JSON config file
        apply_logging: Apply ``logging.level`` to the root logger after each load/save
    """

    def __init__(self, config_path: Union[str, Path], apply_logging: bool = True):
        self._config_path = Path(config_path)
        self._apply_logging = apply_logging
        self._config: Optional[ServerConfig] = None

    @property
    def config_path(self) -> Path:
        return self._config_path

    def _set_current(self, config: ServerConfig) -> None:
        self._config = config
        if self._apply_logging:
            apply_log_level(config.logging.level)

    def _merge_with_defaults(self, parsed: dict) -> ServerConfig:
        """Validate each tracked section on its own and fall back per section."""
        defaults = default_config()
        merged = dict(parsed)

        try:
            logging_section = LoggingConfig.model_validate(parsed.get("logging"))
        except ValidationError:
            logger.warning(
                f"Invalid or missing logging configuration in {self._config_path}, using default."
            )
            logging_section = defaults.logging

        try:
            flags = _feature_flags_adapter.validate_python(parsed.get("featureFlags"))
            flags = {**DEFAULT_FEATURE_FLAGS, **flags}
        except ValidationError:
            logger.warning(
                f"Invalid or missing featureFlags configuration in {self._config_path}, using default."
            )
            flags = dict(defaults.feature_flags)

        merged["logging"] = logging_section
        merged["featureFlags"] = flags
        return ServerConfig.model_validate(merged)

    async def load(self) -> ServerConfig:
        """
        Load the configuration from disk.

        - Missing file: the default config is written out and used.
        - Unreadable or unparsable file: the default is used in memory and
          the file is left alone.
        - Otherwise each section is validated independently.

        Returns:
            The configuration now current in memory
        """
        try:
            payload = await read_snapshot(self._config_path)
        except SnapshotNotFoundError:
            logger.warning(f"{self._config_path} not found, creating with default values.")
            config = default_config()
            try:
                await write_snapshot(self._config_path, encode_json(config.to_file_dict()))
            except PersistenceError as e:
                logger.error(f"Could not create {self._config_path}, using default in-memory config: {e}")
            self._set_current(config)
            return config.model_copy(deep=True)
        except PersistenceError as e:
            logger.error(f"Error reading {self._config_path}, using default in-memory config: {e}")
            self._set_current(default_config())
            return self._config.model_copy(deep=True)

        try:
            parsed = decode_json(payload)
        except ValueError as e:
            logger.error(f"Error parsing {self._config_path}, using default in-memory config: {e}")
            self._set_current(default_config())
            return self._config.model_copy(deep=True)

        if not isinstance(parsed, dict):
            logger.error(f"{self._config_path} does not hold a JSON object, using default in-memory config.")
            self._set_current(default_config())
            return self._config.model_copy(deep=True)

        config = self._merge_with_defaults(parsed)
        self._set_current(config)
        logger.info(f"Configuration loaded from {self._config_path}. Log level: {config.logging.level}")
        return config.model_copy(deep=True)

    async def get(self) -> ServerConfig:
        """Return the current configuration, loading it on first use."""
        if self._config is None:
            logger.warning("Configuration not initialized, loading it now.")
            await self.load()
        return self._config.model_copy(deep=True)

    async def get_raw(self) -> str:
        """Return the config file text, or the in-memory config if the file cannot be read."""
        try:
            payload = await read_snapshot(self._config_path)
            return payload.decode("utf-8")
        except (PersistenceError, UnicodeDecodeError) as e:
            logger.warning(
                f"Failed to read {self._config_path}, returning current in-memory config. Error: {e}"
            )
            current = await self.get()
            return encode_json(current.to_file_dict()).decode("utf-8")

    async def save(self, new_config: Union[ServerConfig, Mapping[str, Any]]) -> ServerConfig:
        """
        Validate, write and apply a full configuration.

        Args:
            new_config: Complete configuration to store

        Returns:
            The configuration now current in memory

        Raises:
            ConfigValidationError: If the config is invalid (nothing written)
            ConfigPersistenceError: If the file write fails (memory unchanged)
        """
        raw = new_config.to_file_dict() if isinstance(new_config, ServerConfig) else dict(new_config)
        try:
            validated = ServerConfig.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Refusing to save invalid server configuration: {e}")
            raise ConfigValidationError(f"Invalid server configuration: {e}") from e

        try:
            await write_snapshot(self._config_path, encode_json(validated.to_file_dict()))
        except PersistenceError as e:
            logger.error(f"Error saving server configuration to {self._config_path}: {e}")
            raise ConfigPersistenceError(str(e)) from e

        self._set_current(validated)
        logger.info(f"Server configuration saved to {self._config_path}")
        return validated.model_copy(deep=True)

    async def reload(self) -> ServerConfig:
        """Re-read the configuration from disk into memory."""
        logger.info(f"Reloading server configuration from {self._config_path}...")
        config = await self.load()
        logger.info(f"Server configuration reloaded. Log level: {config.logging.level}")
        return config
