"""Pydantic models for resolved customer identity."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

VIP_MIN_ORDERS = 5
VIP_MIN_SPENT = 1000.0


def is_vip(total_orders: int, total_spent: float) -> bool:
    """VIP customers: 5+ orders or 1000+ spent."""
    return total_orders >= VIP_MIN_ORDERS or total_spent >= VIP_MIN_SPENT


class CustomerPreferences(BaseModel):
    categories: dict[str, int] = Field(default_factory=dict)
    brands: dict[str, int] = Field(default_factory=dict)
    price_range: str = "mid"


class CustomerProfile(BaseModel):
    """Aggregated view of a caller built from their order history."""
    normalized_phone: str
    name: str
    email: str | None = None
    total_orders: int = 0
    total_spent: float = 0.0
    average_order_value: float = 0.0
    last_order_date: datetime | None = None
    preferred_language: str = "en"
    is_vip: bool = False
    order_history: list[dict] = Field(default_factory=list, max_length=5)
    preferences: CustomerPreferences = Field(default_factory=CustomerPreferences)


class CustomerContext(BaseModel):
    """Read-only projection of a profile for function handlers."""
    model_config = ConfigDict(frozen=True)

    name: str
    is_returning_customer: bool
    is_vip: bool
    preferred_language: str
    recent_orders: list[dict] = Field(default_factory=list)
    preferences: CustomerPreferences = Field(default_factory=CustomerPreferences)
    can_skip_verification: bool = False
