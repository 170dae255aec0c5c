"""Async Data Access Layer for planner sessions.

Provides SessionDAL with owner-scoped CRUD operations on top of
`utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import json
import uuid
from typing import Dict, List, Optional, Sequence, Tuple

from models.session_models import Session, SessionContext, SessionStatus, utc_now
from utils.database_init import AsyncDatabaseInitializer


class SessionDAL:
    """Data access layer for business planner sessions.

    Every read and write is scoped to the owning user id so one caller can
    never see or change another caller's sessions.
    """

    _COLUMNS = ("id", "user_id", "title", "context_json", "status", "created_at", "updated_at")
    _COLUMN_LIST = ", ".join(_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_session(self, user_id: str, title: str, context: SessionContext) -> Session:
        """Insert a new active session and return it."""
        now = utc_now()
        session = Session(
            id=uuid.uuid4().hex,
            user_id=user_id,
            title=title,
            context=context,
            status=SessionStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )
        async with self._db.connection() as conn:
            await conn.execute(
                f"INSERT INTO business_planner_sessions ({self._COLUMN_LIST}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    session.id,
                    session.user_id,
                    session.title,
                    json.dumps(context.to_dict()),
                    session.status.value,
                    session.created_at,
                    session.updated_at,
                ),
            )
            await conn.commit()
        return session

    async def get_session(self, session_id: str, user_id: str) -> Optional[Session]:
        """Return the session, or None if it does not exist for this owner."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM business_planner_sessions WHERE id = ? AND user_id = ?",
                (session_id, user_id),
            )
            row = await cur.fetchone()
            return self._row_to_session(row) if row else None

    async def list_sessions(
        self,
        user_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
        status: Optional[str] = None,
    ) -> Tuple[List[Session], int]:
        """List sessions ordered by most recent activity.

        Returns:
            A tuple of ``(sessions, total_count)`` where ``total_count`` ignores paging.
        """
        where = "WHERE user_id = ?"
        params: List[object] = [user_id]
        if status:
            where += " AND status = ?"
            params.append(status)

        async with self._db.connection() as conn:
            cur = await conn.execute(f"SELECT COUNT(*) FROM business_planner_sessions {where}", tuple(params))
            total = (await cur.fetchone())[0]
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM business_planner_sessions {where} "
                "ORDER BY updated_at DESC LIMIT ? OFFSET ?",
                (*params, limit, offset),
            )
            rows = await cur.fetchall()
            return [self._row_to_session(r) for r in rows], total

    async def count_by_status(self, user_id: str) -> Dict[str, int]:
        """Return session counts keyed by status plus a ``total`` entry."""
        counts = {status.value: 0 for status in SessionStatus}
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT status, COUNT(*) FROM business_planner_sessions WHERE user_id = ? GROUP BY status",
                (user_id,),
            )
            for status, count in await cur.fetchall():
                counts[status] = count
        counts["total"] = sum(counts.values())
        return counts

    async def update_session(
        self,
        session_id: str,
        user_id: str,
        *,
        title: Optional[str] = None,
        status: Optional[SessionStatus] = None,
    ) -> Optional[Session]:
        """Update title and/or status. Returns the updated session or None if missing."""
        updates = {"title": title, "status": status.value if status else None}
        fields = [f"{col} = ?" for col, val in updates.items() if val is not None]
        params: List[object] = [val for val in updates.values() if val is not None]
        fields.append("updated_at = ?")
        params.extend([utc_now(), session_id, user_id])

        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"UPDATE business_planner_sessions SET {', '.join(fields)} WHERE id = ? AND user_id = ?",
                tuple(params),
            )
            await conn.commit()
            if cur.rowcount == 0:
                return None
        return await self.get_session(session_id, user_id)

    async def archive_session(self, session_id: str, user_id: str) -> Optional[Session]:
        """Soft delete: sessions are archived, never removed."""
        return await self.update_session(session_id, user_id, status=SessionStatus.ARCHIVED)

    async def touch(self, session_id: str) -> None:
        """Bump ``updated_at`` after conversation activity."""
        async with self._db.connection() as conn:
            await conn.execute(
                "UPDATE business_planner_sessions SET updated_at = ? WHERE id = ?",
                (utc_now(), session_id),
            )
            await conn.commit()

    @staticmethod
    def _row_to_session(row: Sequence[object]) -> Session:
        """Convert a DB row tuple into a Session."""
        return Session(
            id=row[0],
            user_id=row[1],
            title=row[2],
            context=SessionContext.from_dict(json.loads(row[3] or "{}")),
            status=SessionStatus(row[4]),
            created_at=row[5],
            updated_at=row[6],
        )
