"""
Transcript Store

Persists exported roleplay records using Supabase, falling back to an
in-memory store when no client is configured or the database call fails.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from roleplay_practice.transcript_exporter import TranscriptRecord

logger = logging.getLogger(__name__)

TABLE_NAME = "roleplay_transcripts"


class TranscriptStore:
    """
    Stores exported TranscriptRecords keyed by session id.

    Rows hold the searchable fields (user, scenario, score) next to the full
    JSON record so the record round-trips unchanged.
    """

    def __init__(self, supabase_client=None):
        """
        Initialize TranscriptStore.

        Args:
            supabase_client: Supabase client instance (optional)
        """
        self.supabase = supabase_client
        self.use_supabase = supabase_client is not None
        self._in_memory: Dict[str, Dict[str, Any]] = {}

    def record_to_row(
        self,
        record: TranscriptRecord,
        session_id: str,
        scenario_id: str,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return {
            "session_id": session_id,
            "user_id": user_id,
            "scenario_id": scenario_id,
            "language": record.language,
            "completed": record.completed,
            "final_score": record.final_score,
            "exported_at": record.exported_at,
            "record": record.to_json(indent=None),
        }

    def row_to_record(self, row: Dict[str, Any]) -> TranscriptRecord:
        raw = row["record"]
        if isinstance(raw, str):
            raw = json.loads(raw)
        return TranscriptRecord.from_dict(raw)

    async def save(
        self,
        record: TranscriptRecord,
        session_id: str,
        scenario_id: str,
        user_id: Optional[str] = None,
    ) -> bool:
        """
        Save (upsert by session id) an exported record.

        Returns:
            True if stored in the database, False if only kept in memory
        """
        row = self.record_to_row(record, session_id, scenario_id, user_id)
        self._in_memory[session_id] = row

        if not self.use_supabase:
            return False

        try:
            self.supabase.table(TABLE_NAME).upsert(row, on_conflict="session_id").execute()
            logger.info(f"💾 [TranscriptStore] Saved transcript for session {session_id}")
            return True
        except Exception as e:
            logger.warning(f"⚠️ [TranscriptStore] Error saving transcript {session_id}: {e}, kept in memory")
            return False

    async def get(self, session_id: str) -> Optional[TranscriptRecord]:
        """Load the record exported for a session, if any."""
        if self.use_supabase:
            try:
                result = self.supabase.table(TABLE_NAME).select("*").eq("session_id", session_id).execute()
                if result.data:
                    return self.row_to_record(result.data[0])
                return None
            except Exception as e:
                logger.warning(f"⚠️ [TranscriptStore] Error loading transcript {session_id}: {e}, using in-memory")

        row = self._in_memory.get(session_id)
        return self.row_to_record(row) if row else None

    async def list_for_user(self, user_id: str) -> List[TranscriptRecord]:
        """All records a user has exported, newest first."""
        if self.use_supabase:
            try:
                result = (
                    self.supabase.table(TABLE_NAME)
                    .select("*")
                    .eq("user_id", user_id)
                    .order("exported_at", desc=True)
                    .execute()
                )
                return [self.row_to_record(row) for row in (result.data or [])]
            except Exception as e:
                logger.warning(f"⚠️ [TranscriptStore] Error listing transcripts: {e}, using in-memory")

        rows = [row for row in self._in_memory.values() if row.get("user_id") == user_id]
        rows.sort(key=lambda row: row["exported_at"], reverse=True)
        return [self.row_to_record(row) for row in rows]
