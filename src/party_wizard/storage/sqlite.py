"""Async SQLite session store using aiosqlite."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from ..exceptions import StorageError
from ..models import SessionStatus, WizardMessage, WizardSession, utcnow
from ..serialization import session_from_record, session_to_record
from ..steps import WizardStep
from .base import SessionStore

logger = logging.getLogger(__name__)

# Payload columns hold JSON text.
_JSON_COLUMNS = (
    "party_info",
    "guest_list",
    "menu_plan",
    "timeline",
    "confirmation",
    "transitions",
)

_SESSION_COLUMNS = (
    "id",
    "user_id",
    "current_step",
    "furthest_step_index",
    *_JSON_COLUMNS,
    "status",
    "party_id",
    "created_at",
    "updated_at",
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS wizard_sessions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    current_step TEXT NOT NULL,
    furthest_step_index INTEGER NOT NULL DEFAULT 0,
    party_info TEXT,
    guest_list TEXT NOT NULL DEFAULT '[]',
    menu_plan TEXT,
    timeline TEXT,
    confirmation TEXT,
    transitions TEXT NOT NULL DEFAULT '[]',
    status TEXT NOT NULL,
    party_id TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_wizard_sessions_user_status
    ON wizard_sessions (user_id, status);
CREATE TABLE IF NOT EXISTS wizard_messages (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES wizard_sessions (id),
    step TEXT NOT NULL,
    role TEXT NOT NULL,
    parts TEXT NOT NULL,
    created_at TEXT NOT NULL,
    seq INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_wizard_messages_session_step
    ON wizard_messages (session_id, step, created_at, seq);
"""


class AsyncSQLiteSessionStore(SessionStore):
    """Session store backed by a SQLite file.

    Args:
        path: Database file path, or ``":memory:"``
        timeout: Connection timeout in seconds
    """

    def __init__(self, path: str = ":memory:", timeout: float = 5.0):
        self.db_path = path
        self.timeout = timeout
        self.db: aiosqlite.Connection | None = None
        self._seq = 0

    async def initialize(self) -> None:
        if self.db is not None:
            return

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.db = await aiosqlite.connect(self.db_path, timeout=self.timeout)
        self.db.row_factory = aiosqlite.Row
        if self.db_path != ":memory:":
            await self.db.execute("PRAGMA journal_mode = WAL")
        await self.db.execute("PRAGMA foreign_keys = ON")
        await self.db.executescript(SCHEMA)
        await self.db.commit()

        async with self.db.execute("SELECT COALESCE(MAX(seq), 0) FROM wizard_messages") as cursor:
            row = await cursor.fetchone()
            self._seq = int(row[0]) if row else 0
        logger.info("Connected to wizard session database: %s", self.db_path)

    async def close(self) -> None:
        if self.db is not None:
            await self.db.close()
            self.db = None
            logger.info("Disconnected from wizard session database: %s", self.db_path)

    def _conn(self) -> aiosqlite.Connection:
        if self.db is None:
            raise StorageError("Database not connected. Call initialize() first.")
        return self.db

    @staticmethod
    def _to_row(session: WizardSession) -> dict[str, Any]:
        record = session_to_record(session)
        for column in _JSON_COLUMNS:
            record[column] = None if record[column] is None else json.dumps(record[column])
        return record

    @staticmethod
    def _from_row(row: aiosqlite.Row) -> WizardSession:
        record = {column: row[column] for column in _SESSION_COLUMNS}
        for column in _JSON_COLUMNS:
            if record[column] is not None:
                record[column] = json.loads(record[column])
        return session_from_record(record)

    async def get_session(self, session_id: str) -> WizardSession | None:
        db = self._conn()
        async with db.execute(
            "SELECT * FROM wizard_sessions WHERE id = ?", (session_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return None if row is None else self._from_row(row)

    async def get_active_session(self, user_id: str) -> WizardSession | None:
        db = self._conn()
        async with db.execute(
            "SELECT * FROM wizard_sessions WHERE user_id = ? AND status = ? "
            "ORDER BY created_at DESC LIMIT 1",
            (user_id, SessionStatus.ACTIVE.value),
        ) as cursor:
            row = await cursor.fetchone()
        return None if row is None else self._from_row(row)

    async def create_session(self, user_id: str) -> WizardSession:
        db = self._conn()
        session = WizardSession(user_id=user_id)
        row = self._to_row(session)
        placeholders = ", ".join("?" for _ in _SESSION_COLUMNS)
        try:
            await db.execute(
                "UPDATE wizard_sessions SET status = ?, updated_at = ? "
                "WHERE user_id = ? AND status = ?",
                (
                    SessionStatus.ABANDONED.value,
                    utcnow().isoformat(),
                    user_id,
                    SessionStatus.ACTIVE.value,
                ),
            )
            await db.execute(
                f"INSERT INTO wizard_sessions ({', '.join(_SESSION_COLUMNS)}) "
                f"VALUES ({placeholders})",
                tuple(row[c] for c in _SESSION_COLUMNS),
            )
            await db.commit()
        except aiosqlite.Error as e:
            await db.rollback()
            raise StorageError(f"Failed to create session: {e}") from e
        return session

    async def save_session(self, session: WizardSession) -> None:
        db = self._conn()
        row = self._to_row(session)
        columns = [c for c in _SESSION_COLUMNS if c != "id"]
        assignments = ", ".join(f"{c} = ?" for c in columns)
        cursor = await db.execute(
            f"UPDATE wizard_sessions SET {assignments} WHERE id = ?",
            (*(row[c] for c in columns), session.id),
        )
        await db.commit()
        if cursor.rowcount == 0:
            raise StorageError(
                f"Session {session.id} does not exist", context={"session_id": session.id}
            )

    async def append_message(self, message: WizardMessage) -> None:
        db = self._conn()
        self._seq += 1
        await db.execute(
            "INSERT INTO wizard_messages (id, session_id, step, role, parts, created_at, seq) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                message.id,
                message.session_id,
                message.step.value,
                message.role,
                json.dumps(message.parts),
                message.created_at.isoformat(),
                self._seq,
            ),
        )
        await db.commit()

    async def list_messages(
        self, session_id: str, step: WizardStep | None = None
    ) -> list[WizardMessage]:
        db = self._conn()
        query = "SELECT * FROM wizard_messages WHERE session_id = ?"
        params: tuple[Any, ...] = (session_id,)
        if step is not None:
            query += " AND step = ?"
            params += (step.value,)
        query += " ORDER BY created_at, seq"

        async with db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [
            WizardMessage.from_dict(
                {
                    "id": row["id"],
                    "session_id": row["session_id"],
                    "step": row["step"],
                    "role": row["role"],
                    "parts": json.loads(row["parts"]),
                    "created_at": row["created_at"],
                }
            )
            for row in rows
        ]
