"""
Call Log Repository
Durable record of calls and their turns, stored in SQLite
"""

import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from voice_receptionist.core.config import settings
from voice_receptionist.core.logging import get_logger
from voice_receptionist.models.call import CallLogRecord, CallStatus, ConversationTurn, Speaker

logger = get_logger(__name__)


class CallLogRepository(ABC):
    """Persistence collaborator for the call log"""

    @abstractmethod
    def create(self, record: CallLogRecord) -> None:
        ...

    @abstractmethod
    def get(self, call_id: str) -> Optional[CallLogRecord]:
        ...

    @abstractmethod
    def record_recording(
        self,
        call_id: str,
        recording_locator: str,
        transcript: Optional[str],
        duration_seconds: Optional[int]
    ) -> None:
        ...

    @abstractmethod
    def update_status(self, call_id: str, status: CallStatus, duration_seconds: Optional[int] = None) -> bool:
        ...

    @abstractmethod
    def add_turn(self, call_id: str, turn: ConversationTurn) -> None:
        ...

    @abstractmethod
    def get_turns(self, call_id: str) -> List[ConversationTurn]:
        ...


class SQLiteCallLogRepository(CallLogRepository):
    """SQLite implementation; one short-lived connection per operation"""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or settings.call_log_db_path
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _init_database(self):
        """Initialize database schema"""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS calls (
                    call_id TEXT PRIMARY KEY,
                    tenant_id TEXT NOT NULL,
                    caller_number TEXT NOT NULL,
                    callee_number TEXT,
                    transcript TEXT,
                    recording_locator TEXT,
                    duration_seconds INTEGER,
                    status TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    ended_at TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS call_turns (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    call_id TEXT NOT NULL,
                    speaker TEXT NOT NULL,
                    text TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (call_id) REFERENCES calls(call_id)
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_calls_tenant ON calls(tenant_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_turns_call ON call_turns(call_id)")

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection context manager"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def create(self, record: CallLogRecord) -> None:
        """Insert a call row; a repeated webhook for the same call only refreshes its status"""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO calls (
                    call_id, tenant_id, caller_number, callee_number, transcript,
                    recording_locator, duration_seconds, status, created_at, ended_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(call_id) DO UPDATE SET status = excluded.status
            """, (
                record.call_id,
                record.tenant_id,
                record.caller_number,
                record.callee_number,
                record.transcript,
                record.recording_locator,
                record.duration_seconds,
                record.status.value,
                record.created_at.isoformat(),
                record.ended_at.isoformat() if record.ended_at else None,
            ))
            conn.commit()

    def get(self, call_id: str) -> Optional[CallLogRecord]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM calls WHERE call_id = ?", (call_id,)).fetchone()

        if not row:
            return None

        return CallLogRecord(
            call_id=row["call_id"],
            tenant_id=row["tenant_id"],
            caller_number=row["caller_number"],
            callee_number=row["callee_number"],
            transcript=row["transcript"],
            recording_locator=row["recording_locator"],
            duration_seconds=row["duration_seconds"],
            status=CallStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            ended_at=datetime.fromisoformat(row["ended_at"]) if row["ended_at"] else None,
        )

    def record_recording(
        self,
        call_id: str,
        recording_locator: str,
        transcript: Optional[str],
        duration_seconds: Optional[int]
    ) -> None:
        """Store the latest recording; transcripts accumulate one line per turn"""
        with self._get_connection() as conn:
            conn.execute("""
                UPDATE calls SET
                    recording_locator = ?,
                    duration_seconds = COALESCE(?, duration_seconds),
                    transcript = CASE
                        WHEN ? IS NULL THEN transcript
                        WHEN transcript IS NULL OR transcript = '' THEN ?
                        ELSE transcript || char(10) || ?
                    END
                WHERE call_id = ?
            """, (recording_locator, duration_seconds, transcript, transcript, transcript, call_id))
            conn.commit()

    def update_status(self, call_id: str, status: CallStatus, duration_seconds: Optional[int] = None) -> bool:
        """
        Update a call's status

        Args:
            call_id: Gateway call identifier
            status: New status; final statuses also stamp ended_at
            duration_seconds: Total call duration if known

        Returns:
            True if a row was updated
        """
        ended_at = datetime.utcnow().isoformat() if status.is_final else None
        with self._get_connection() as conn:
            cursor = conn.execute("""
                UPDATE calls SET
                    status = ?,
                    duration_seconds = COALESCE(?, duration_seconds),
                    ended_at = COALESCE(?, ended_at)
                WHERE call_id = ?
            """, (status.value, duration_seconds, ended_at, call_id))
            conn.commit()
            return cursor.rowcount > 0

    def add_turn(self, call_id: str, turn: ConversationTurn) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "INSERT INTO call_turns (call_id, speaker, text, created_at) VALUES (?, ?, ?, ?)",
                (call_id, turn.speaker.value, turn.text, turn.created_at.isoformat())
            )
            conn.commit()

    def get_turns(self, call_id: str) -> List[ConversationTurn]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT speaker, text, created_at FROM call_turns WHERE call_id = ? ORDER BY id",
                (call_id,)
            ).fetchall()

        return [
            ConversationTurn(
                speaker=Speaker(row["speaker"]),
                text=row["text"],
                created_at=datetime.fromisoformat(row["created_at"])
            )
            for row in rows
        ]


# Singleton instance
_call_log: Optional[CallLogRepository] = None


def get_call_log() -> CallLogRepository:
    """Get the CallLogRepository singleton instance"""
    global _call_log
    if _call_log is None:
        _call_log = SQLiteCallLogRepository()
    return _call_log
