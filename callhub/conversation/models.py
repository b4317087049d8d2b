"""Pydantic models for conversation records and analytics events."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from callhub.customers.models import CustomerContext, CustomerProfile


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid4().hex


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    INCOMPLETE = "incomplete"


class Conversation(BaseModel):
    """One record per platform call id."""
    id: str = Field(default_factory=_new_id)
    call_id: str
    phone: str | None = None
    status: ConversationStatus = ConversationStatus.ACTIVE
    started_at: datetime = Field(default_factory=_utcnow)
    ended_at: datetime | None = None
    duration_seconds: float | None = None
    cost: float | None = None
    cost_breakdown: dict[str, float] = Field(default_factory=dict)
    functions_called: list[str] = Field(default_factory=list)
    transcript: Any = None
    language_detected: str | None = None
    metadata: dict = Field(default_factory=dict)


class AnalyticsEvent(BaseModel):
    """An analytics record (for telemetry and cost reports)."""
    event_type: str  # "function_call", "cache_hit", "webhook_call_ended", etc.
    timestamp: datetime = Field(default_factory=_utcnow)
    conversation_id: str | None = None
    properties: dict = Field(default_factory=dict)


class CallContext(BaseModel):
    """Per-invocation context handed to function handlers."""
    call_id: str | None = None
    conversation_id: str | None = None
    customer_number: str | None = None
    customer_profile: CustomerProfile | None = None
    customer_context: CustomerContext | None = None
    transcript: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)
