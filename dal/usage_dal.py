"""Async Data Access Layer for per-user conversation usage."""

from __future__ import annotations

from datetime import date
from typing import Sequence

from models.planner_records import UsageRecord
from utils.database_init import AsyncDatabaseInitializer


class UsageDAL:
    """Read and bump the conversation counters used for usage limits."""

    _COLUMNS = (
        "user_id",
        "free_conversations_used",
        "paid_conversations_used",
        "total_tokens_used",
        "subscription_status",
        "last_reset_date",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def get_or_create(self, user_id: str) -> UsageRecord:
        """Return the usage row for ``user_id``, creating a free-tier row if missing."""
        async with self._db.connection() as conn:
            await conn.execute(
                "INSERT OR IGNORE INTO business_planner_usage (user_id, last_reset_date) VALUES (?, ?)",
                (user_id, date.today().isoformat()),
            )
            await conn.commit()
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM business_planner_usage WHERE user_id = ?",
                (user_id,),
            )
            row = await cur.fetchone()
            return self._row_to_record(row)

    async def record_conversation(self, user_id: str, tokens_used: int, paid_limit: int) -> UsageRecord:
        """Count one completed conversation against the paid bundle first, else the free tier.

        The bucket is chosen from the row as it stands when the UPDATE runs,
        so concurrent turns for one user each see the other's increment.
        """
        async with self._db.connection() as conn:
            await conn.execute(
                """
                UPDATE business_planner_usage SET
                    paid_conversations_used = paid_conversations_used
                        + CASE WHEN subscription_status = 'paid' AND paid_conversations_used < ? THEN 1 ELSE 0 END,
                    free_conversations_used = free_conversations_used
                        + CASE WHEN subscription_status = 'paid' AND paid_conversations_used < ? THEN 0 ELSE 1 END,
                    total_tokens_used = total_tokens_used + ?
                WHERE user_id = ?
                """,
                (paid_limit, paid_limit, max(tokens_used, 0), user_id),
            )
            await conn.commit()
        return await self.get_or_create(user_id)

    async def set_subscription(self, user_id: str, status: str) -> UsageRecord:
        await self.get_or_create(user_id)
        async with self._db.connection() as conn:
            await conn.execute(
                "UPDATE business_planner_usage SET subscription_status = ? WHERE user_id = ?",
                (status, user_id),
            )
            await conn.commit()
        return await self.get_or_create(user_id)

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> UsageRecord:
        return UsageRecord(
            user_id=row[0],
            free_conversations_used=row[1],
            paid_conversations_used=row[2],
            total_tokens_used=row[3],
            subscription_status=row[4],
            last_reset_date=row[5],
        )
