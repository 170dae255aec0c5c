from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ConversationRecord:
    """In-memory representation of a row in the conversations table.

    Attributes:
        id: Primary key (uuid hex).
        session_id: Session the message belongs to.
        user_id: Owner of the session.
        role: Either "user" or "assistant".
        content: Full message text.
        tokens_used: Tokens consumed producing the message (assistant only).
        created_at: ISO-8601 timestamp when the row was inserted.
    """

    id: str
    session_id: str
    user_id: str
    role: str
    content: str
    tokens_used: int = 0
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "role": self.role,
            "content": self.content,
            "tokens_used": self.tokens_used,
            "created_at": self.created_at,
        }


@dataclass
class UsageRecord:
    """Per-user conversation counters.

    Attributes:
        user_id: Owner of the counters (primary key).
        free_conversations_used: Completed conversations billed to the free tier.
        paid_conversations_used: Completed conversations billed to the paid bundle.
        total_tokens_used: Running total of model tokens.
        subscription_status: "free" or "paid".
        last_reset_date: Date (YYYY-MM-DD) the counters were created or reset.
    """

    user_id: str
    free_conversations_used: int = 0
    paid_conversations_used: int = 0
    total_tokens_used: int = 0
    subscription_status: str = "free"
    last_reset_date: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.subscription_status == "paid"
