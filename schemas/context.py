"""Pydantic schemas for the context API.

Wire names are camelCase (``ownerId``, ``initialData``, ``listKey``) to match
the playground front-end; Python attributes stay snake_case.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, JsonValue

from models.context import Context


class CreateContextRequest(BaseModel):
    """Request to create a context."""

    model_config = ConfigDict(populate_by_name=True)

    owner_id: str = Field(..., alias="ownerId", min_length=1, description="User, agent or session id")
    type: str = Field(..., min_length=1, description='Classification tag, e.g. "chat_history"')
    initial_data: JsonValue = Field(default=None, alias="initialData")
    metadata: Optional[Dict[str, JsonValue]] = None


class UpdateContextRequest(BaseModel):
    """Request to replace a context's data.

    ``data`` is required (send ``{}`` to clear it) because it replaces the
    stored value wholesale.
    """

    data: JsonValue = Field(..., description="Complete new data value")
    metadata: Optional[Dict[str, JsonValue]] = Field(default=None, description="Merged into existing metadata")


class AppendToListRequest(BaseModel):
    """Request to append an item to a list inside a context's data."""

    model_config = ConfigDict(populate_by_name=True)

    list_key: str = Field(..., alias="listKey", min_length=1)
    item: JsonValue = Field(..., description="Any JSON value, including null, false, 0 or empty string")


class ContextResponse(BaseModel):
    """A context record."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    owner_id: str = Field(..., alias="ownerId")
    type: str
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")
    data: JsonValue = None
    metadata: Dict[str, JsonValue] = Field(default_factory=dict)

    @classmethod
    def from_context(cls, context: Context) -> "ContextResponse":
        return cls(
            id=context.id,
            owner_id=context.owner_id,
            type=context.type,
            created_at=context.created_at,
            updated_at=context.updated_at,
            data=context.data,
            metadata=context.metadata,
        )


class ContextListResponse(BaseModel):
    """List of contexts."""

    contexts: List[ContextResponse]
