"""Server configuration model.

Two tracked sections: ``logging.level`` and ``featureFlags``. Any other
top-level sections found in the config file are carried through untouched.
"""

from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool

LogLevel = Literal["debug", "info", "warn", "error"]

LOG_LEVELS: tuple[str, ...] = ("debug", "info", "warn", "error")

DEFAULT_LOG_LEVEL: LogLevel = "info"

FeatureFlags = Dict[str, StrictBool]

# Built-in flags, always present after a load
DEFAULT_FEATURE_FLAGS: Dict[str, bool] = {
    "newFeatureX": False,
}


class LoggingConfig(BaseModel):
    """The ``logging`` section."""

    model_config = ConfigDict(extra="allow")

    level: LogLevel


class ServerConfig(BaseModel):
    """Process-wide server configuration."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    logging: LoggingConfig
    feature_flags: FeatureFlags = Field(alias="featureFlags")

    def to_file_dict(self) -> Dict[str, Any]:
        """Dump with the on-disk key names, extra sections included."""
        return self.model_dump(mode="json", by_alias=True)


def default_config() -> ServerConfig:
    """Compiled-in fallback configuration."""
    return ServerConfig(
        logging=LoggingConfig(level=DEFAULT_LOG_LEVEL),
        featureFlags=dict(DEFAULT_FEATURE_FLAGS),
    )
