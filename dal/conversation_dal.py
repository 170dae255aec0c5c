"""Async Data Access Layer for conversation messages."""

from __future__ import annotations

import uuid
from typing import Dict, List, Optional, Sequence

from models.planner_records import ConversationRecord
from models.session_models import utc_now
from utils.database_init import AsyncDatabaseInitializer


class ConversationDAL:
    """Store and read the messages exchanged in a planning session.

    Messages carry a per-session sequence number so history is returned in
    insertion order even when timestamps collide.
    """

    _COLUMNS = ("id", "session_id", "user_id", "role", "content", "tokens_used", "created_at")
    _COLUMN_LIST = ", ".join(_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def add_message(
        self,
        session_id: str,
        user_id: str,
        role: str,
        content: str,
        tokens_used: int = 0,
        *,
        message_id: Optional[str] = None,
    ) -> ConversationRecord:
        """Insert a message and return the stored record."""
        record = ConversationRecord(
            id=message_id or uuid.uuid4().hex,
            session_id=session_id,
            user_id=user_id,
            role=role,
            content=content,
            tokens_used=tokens_used,
            created_at=utc_now(),
        )
        async with self._db.connection() as conn:
            await conn.execute(
                f"INSERT INTO business_planner_conversations ({self._COLUMN_LIST}, seq) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, "
                "(SELECT COALESCE(MAX(seq), 0) + 1 FROM business_planner_conversations WHERE session_id = ?))",
                (
                    record.id,
                    record.session_id,
                    record.user_id,
                    record.role,
                    record.content,
                    record.tokens_used,
                    record.created_at,
                    record.session_id,
                ),
            )
            await conn.commit()
        return record

    async def list_messages(self, session_id: str, user_id: str) -> List[ConversationRecord]:
        """Return every message of a session, oldest first."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM business_planner_conversations "
                "WHERE session_id = ? AND user_id = ? ORDER BY seq ASC",
                (session_id, user_id),
            )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    async def recent_history(self, session_id: str, limit: int = 10) -> List[Dict[str, str]]:
        """Return the last ``limit`` messages as role/content pairs, oldest first."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT role, content FROM business_planner_conversations "
                "WHERE session_id = ? ORDER BY seq DESC LIMIT ?",
                (session_id, limit),
            )
            rows = await cur.fetchall()
        return [{"role": role, "content": content} for role, content in reversed(rows)]

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> ConversationRecord:
        return ConversationRecord(
            id=row[0],
            session_id=row[1],
            user_id=row[2],
            role=row[3],
            content=row[4],
            tokens_used=row[5] or 0,
            created_at=row[6],
        )
