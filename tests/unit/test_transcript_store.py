"""
Unit Tests for Transcript Store

Tests in-memory storage and the Supabase code path with a mock client.
"""

import pytest
import sys
import os
from datetime import datetime, timezone
from unittest.mock import MagicMock

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "roleplay_practice", "src"))

from roleplay_practice.scenario_catalog import get_default_catalog
from roleplay_practice.session_state import LifecycleState, RoleplaySession, TurnRole
from roleplay_practice.transcript_exporter import export_transcript
from roleplay_practice.transcript_store import TABLE_NAME, TranscriptStore


def make_record(hour=12):
    session = RoleplaySession(scenario_id="public-speaking-anxiety", lifecycle_state=LifecycleState.GRADED)
    session.append_turn(TurnRole.USER, "I freeze")
    session.step_scores = {1: 3.0}
    session.coach_notes = {1: "Breathe"}
    scenario = get_default_catalog().get_scenario("public-speaking-anxiety")
    return export_transcript(session, scenario, exported_at=datetime(2026, 3, 1, hour, tzinfo=timezone.utc))


class TestInMemoryStore:
    """Test suite for the in-memory fallback."""

    @pytest.fixture
    def store(self):
        return TranscriptStore()

    @pytest.mark.asyncio
    async def test_save_and_get(self, store):
        record = make_record()
        stored = await store.save(record, session_id="s1", scenario_id="public-speaking-anxiety", user_id="u1")

        assert stored is False
        assert await store.get("s1") == record
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_save_upserts(self, store):
        await store.save(make_record(10), session_id="s1", scenario_id="public-speaking-anxiety", user_id="u1")
        await store.save(make_record(11), session_id="s1", scenario_id="public-speaking-anxiety", user_id="u1")

        records = await store.list_for_user("u1")
        assert len(records) == 1
        assert records[0].exported_at.startswith("2026-03-01T11")

    @pytest.mark.asyncio
    async def test_list_newest_first(self, store):
        await store.save(make_record(9), session_id="a", scenario_id="public-speaking-anxiety", user_id="u1")
        await store.save(make_record(15), session_id="b", scenario_id="public-speaking-anxiety", user_id="u1")
        await store.save(make_record(12), session_id="c", scenario_id="public-speaking-anxiety", user_id="u2")

        records = await store.list_for_user("u1")
        assert [r.exported_at[11:13] for r in records] == ["15", "09"]


class TestSupabaseStore:
    """Test suite for the Supabase code path."""

    @pytest.mark.asyncio
    async def test_save_upserts_row(self):
        client = MagicMock()
        store = TranscriptStore(supabase_client=client)
        record = make_record()

        stored = await store.save(record, session_id="s1", scenario_id="public-speaking-anxiety", user_id="u1")

        assert stored is True
        client.table.assert_called_with(TABLE_NAME)
        row = client.table.return_value.upsert.call_args[0][0]
        assert row["session_id"] == "s1"
        assert row["final_score"] is None
        assert store.row_to_record(row) == record

    @pytest.mark.asyncio
    async def test_database_failure_falls_back(self):
        client = MagicMock()
        client.table.side_effect = RuntimeError("database unavailable")
        store = TranscriptStore(supabase_client=client)
        record = make_record()

        stored = await store.save(record, session_id="s1", scenario_id="public-speaking-anxiety", user_id="u1")

        assert stored is False
        assert await store.get("s1") == record


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
