"""Unit tests for the Context record model."""
from datetime import datetime, timedelta, timezone

import pytest

from models.context import Context, utc_now


def make_context(**overrides) -> Context:
    now = utc_now()
    fields = {
        "id": "ctx-1",
        "owner_id": "agent_1",
        "type": "chat_history",
        "created_at": now,
        "updated_at": now,
        "data": {"chat_history": [{"role": "user", "content": "hi"}]},
        "metadata": {"source": "ui"},
    }
    fields.update(overrides)
    return Context(**fields)


class TestContextSerialization:
    """Tests for to_dict / from_dict."""

    def test_to_dict_uses_camel_case_keys(self):
        context = make_context()

        record = context.to_dict()

        assert set(record) == {"id", "ownerId", "type", "createdAt", "updatedAt", "data", "metadata"}
        assert record["ownerId"] == "agent_1"
        assert record["createdAt"] == context.created_at.isoformat()

    def test_from_dict_restores_record(self):
        context = make_context()

        restored = Context.from_dict(context.to_dict())

        assert restored == context

    def test_from_dict_parses_zulu_suffix(self):
        record = make_context().to_dict()
        record["createdAt"] = "2024-05-01T10:00:00.000Z"
        record["updatedAt"] = "2024-05-01T10:00:00.000Z"

        restored = Context.from_dict(record)

        assert restored.created_at == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)

    def test_from_dict_treats_naive_timestamps_as_utc(self):
        record = make_context().to_dict()
        record["createdAt"] = "2024-05-01T10:00:00"
        record["updatedAt"] = "2024-05-01T10:00:00"

        restored = Context.from_dict(record)

        assert restored.created_at.tzinfo is timezone.utc

    def test_from_dict_clamps_updated_before_created(self):
        """updatedAt never precedes createdAt after a load."""
        created = utc_now()
        record = make_context(created_at=created, updated_at=created - timedelta(hours=1)).to_dict()

        restored = Context.from_dict(record)

        assert restored.updated_at == restored.created_at

    def test_from_dict_defaults_missing_data_and_metadata(self):
        record = make_context().to_dict()
        del record["data"]
        del record["metadata"]

        restored = Context.from_dict(record)

        assert restored.data == {}
        assert restored.metadata == {}

    @pytest.mark.parametrize("missing", ["id", "ownerId", "type", "createdAt"])
    def test_from_dict_rejects_missing_required_keys(self, missing):
        record = make_context().to_dict()
        del record[missing]

        with pytest.raises(KeyError):
            Context.from_dict(record)


class TestContextCopy:
    """Tests for copy."""

    def test_copy_is_deep(self):
        context = make_context()

        clone = context.copy()
        clone.data["chat_history"].append({"role": "assistant", "content": "hello"})
        clone.metadata["source"] = "api"

        assert len(context.data["chat_history"]) == 1
        assert context.metadata["source"] == "ui"
