"""Pydantic schemas for the admin configuration API."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class EvolveConfigRequest(BaseModel):
    """Natural-language request to change one configuration field."""

    target: Optional[str] = Field(default=None, description='Dotted field to change, currently only "logging.level"')
    request: Optional[str] = Field(
        default=None,
        description='Natural-language instruction, e.g. "make logging more verbose"',
    )


class EvolveConfigResponse(BaseModel):
    """Audit record of an applied configuration change."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = "Configuration successfully evolved and applied."
    target: str
    previous_value: Any = Field(..., alias="previousValue")
    new_value: str = Field(..., alias="newValue")
    backup_path: str = Field(..., alias="backupPath")
    natural_language_request: str = Field(..., alias="naturalLanguageRequest")


class EvolveConfigErrorResponse(BaseModel):
    """Structured rejection from the evolution pipeline.

    Extra keys carry stage-specific diagnostics (``llmProposal``,
    ``allowedValues``, ``currentValue``, ``llmError``, ``backupPath``...).
    """

    model_config = ConfigDict(extra="allow")

    error: str = Field(..., description="Stage that rejected the request, e.g. InvalidProposal")
    message: str


class ServerConfigResponse(BaseModel):
    """Current server configuration as stored on disk."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    logging: Dict[str, Any]
    feature_flags: Dict[str, bool] = Field(..., alias="featureFlags")
