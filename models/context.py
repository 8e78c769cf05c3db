"""Context record model for the JSON-backed context store."""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import JsonValue


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    # Snapshots written by older servers use a trailing "Z"
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Context:
    """Durable record of opaque application state.

    The store never inspects ``data`` except when appending to a named
    list inside it. ``metadata`` is merged key-by-key on update.
    """

    id: str
    owner_id: str  # user, agent or session id
    type: str  # e.g. "chat_history", "reasoning_agent_memory"
    created_at: datetime
    updated_at: datetime
    data: JsonValue = field(default_factory=dict)
    metadata: Dict[str, JsonValue] = field(default_factory=dict)

    def copy(self) -> "Context":
        """Deep copy so callers cannot mutate the store's record."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the snapshot/wire key names."""
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "type": self.type,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "data": self.data,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Context":
        """Rebuild a record from its snapshot form.

        Raises:
            KeyError, TypeError, ValueError: If the record is malformed
        """
        created_at = _parse_timestamp(raw["createdAt"])
        updated_at = _parse_timestamp(raw.get("updatedAt") or raw["createdAt"])
        return cls(
            id=raw["id"],
            owner_id=raw["ownerId"],
            type=raw["type"],
            created_at=created_at,
            updated_at=max(created_at, updated_at),
            data=raw.get("data", {}),
            metadata=dict(raw.get("metadata") or {}),
        )
