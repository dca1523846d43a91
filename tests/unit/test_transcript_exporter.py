"""
Unit Tests for Transcript Export

Tests the exported record shape and its determinism.
"""

import pytest
import json
import sys
import os
from datetime import datetime, timezone

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "roleplay_practice", "src"))

from roleplay_practice.scenario_catalog import get_default_catalog
from roleplay_practice.session_state import LifecycleState, RoleplaySession, TurnRole
from roleplay_practice.transcript_exporter import TranscriptRecord, export_transcript

EXPORTED_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestExportTranscript:
    """Test suite for export_transcript()."""

    @pytest.fixture
    def scenario(self):
        return get_default_catalog().get_scenario("conflict-resolution")

    @pytest.fixture
    def completed_session(self):
        session = RoleplaySession(scenario_id="conflict-resolution", language="sv")
        session.append_turn(TurnRole.SYSTEM, "Starting roleplay: Konfliktlösning")
        session.append_turn(TurnRole.USER, "Vi bråkar om diskningen")
        session.append_turn(TurnRole.ASSISTANT, "Berätta mer")
        session.append_turn(TurnRole.USER, "Vi vill båda ha ordning")
        session.append_turn(TurnRole.ASSISTANT, "Bra")
        # Recorded out of order on purpose
        session.step_scores = {2: 3.0, 1: 4.0}
        session.coach_notes = {2: "Sök kompromiss", 1: "Lyssnade väl"}
        session.final_score = 3.5
        session.current_step = 3
        session.lifecycle_state = LifecycleState.COMPLETE
        return session

    def test_completed_record(self, completed_session, scenario):
        record = export_transcript(completed_session, scenario, exported_at=EXPORTED_AT)

        assert record.scenario == "Konfliktlösning"
        assert record.language == "sv"
        assert record.completed is True
        assert record.final_score == 3.5
        assert [step.step for step in record.steps] == [1, 2]
        assert record.steps[0].coach_note == "Lyssnade väl"
        assert record.exported_at == "2026-03-01T12:00:00+00:00"

    def test_system_turns_excluded(self, completed_session, scenario):
        record = export_transcript(completed_session, scenario, exported_at=EXPORTED_AT)
        assert [turn.role for turn in record.transcript] == ["user", "assistant", "user", "assistant"]

    def test_in_progress_has_no_final_score(self, scenario):
        session = RoleplaySession(scenario_id="conflict-resolution", lifecycle_state=LifecycleState.GRADED)
        session.step_scores = {1: 4.0}
        session.coach_notes = {1: "Good"}

        record = export_transcript(session, scenario, exported_at=EXPORTED_AT)

        assert record.completed is False
        assert record.final_score is None
        assert len(record.steps) == 1

    def test_deterministic(self, completed_session, scenario):
        first = export_transcript(completed_session, scenario, exported_at=EXPORTED_AT)
        second = export_transcript(completed_session, scenario, exported_at=EXPORTED_AT)
        assert first.to_json() == second.to_json()

    def test_json_shape(self, completed_session, scenario):
        data = json.loads(export_transcript(completed_session, scenario, exported_at=EXPORTED_AT).to_json())

        assert set(data) == {"scenario", "language", "completed", "finalScore", "steps", "transcript", "exportedAt"}
        assert data["steps"][1] == {"step": 2, "score": 3.0, "coachNote": "Sök kompromiss"}
        assert set(data["transcript"][0]) == {"role", "content", "timestamp"}

    def test_from_json(self, completed_session, scenario):
        record = export_transcript(completed_session, scenario, exported_at=EXPORTED_AT)
        assert TranscriptRecord.from_json(record.to_json()) == record


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
