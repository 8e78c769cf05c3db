"""Domain models for the MCP context server."""

from .context import Context
from .server_config import (
    DEFAULT_FEATURE_FLAGS,
    LOG_LEVELS,
    LoggingConfig,
    LogLevel,
    ServerConfig,
    default_config,
)

__all__ = [
    "Context",
    "DEFAULT_FEATURE_FLAGS",
    "LOG_LEVELS",
    "LoggingConfig",
    "LogLevel",
    "ServerConfig",
    "default_config",
]
