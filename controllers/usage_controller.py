"""Conversation allowance checks for the business planner."""

from typing import Any, Dict

from fastapi import Request

from dal.usage_dal import UsageDAL
from models.planner_records import UsageRecord
from utils.api_errors import FREE_LIMIT_EXCEEDED, PAID_LIMIT_EXCEEDED, api_error
from utils.settings import BackendSettings


def usage_summary(usage: UsageRecord, settings: BackendSettings) -> Dict[str, Any]:
    """Compute remaining free and paid conversations for a usage row."""
    remaining_free = max(0, settings.free_conversations - usage.free_conversations_used)
    remaining_paid = max(0, settings.paid_conversations - usage.paid_conversations_used) if usage.is_paid else 0
    return {
        "subscription_status": usage.subscription_status,
        "free_conversations_used": usage.free_conversations_used,
        "paid_conversations_used": usage.paid_conversations_used,
        "total_tokens_used": usage.total_tokens_used,
        "remaining_free": remaining_free,
        "remaining_paid": remaining_paid,
        "can_continue": remaining_free + remaining_paid > 0,
        "needs_upgrade": not usage.is_paid and remaining_free <= 0,
    }


def ensure_can_continue(usage: UsageRecord, settings: BackendSettings) -> Dict[str, Any]:
    """Raise 402 when the caller has no conversations left."""
    summary = usage_summary(usage, settings)
    if summary["can_continue"]:
        return summary
    if usage.is_paid:
        raise api_error(
            402,
            PAID_LIMIT_EXCEEDED,
            "Paid conversation limit exceeded. Please purchase more conversations.",
            {"usage": summary},
        )
    raise api_error(
        402,
        FREE_LIMIT_EXCEEDED,
        "Free conversation limit exceeded. Please upgrade to continue.",
        {"usage": summary},
    )


async def get_usage(request: Request, user_id: str) -> Dict[str, Any]:
    usage = await UsageDAL(request.app.state.db_initializer).get_or_create(user_id)
    return {"usage": usage_summary(usage, request.app.state.settings)}
