"""ConversationDatastore abstract interface.

The relational store behind this interface is an external collaborator.
Implementations raise DependencyError when the backend is unavailable.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from callhub.conversation.models import AnalyticsEvent, Conversation


class ConversationDatastore(ABC):
    """Conversations, analytics events, products, orders and appointments."""

    @abstractmethod
    async def create_conversation(
        self, call_id: str, phone: str | None, metadata: dict | None = None
    ) -> Conversation:
        """Create the conversation for a call id, or return the existing one.

        Metadata passed for an existing conversation is merged into it.
        """

    @abstractmethod
    async def get_conversation(self, call_id: str) -> Conversation | None:
        """Get the conversation for a call id."""

    @abstractmethod
    async def update_conversation(self, call_id: str, updates: dict) -> Conversation | None:
        """Apply field updates; `metadata` is merged, `functions_called` appended."""

    @abstractmethod
    async def update_call_cost(
        self, call_id: str, cost: float, breakdown: dict[str, float]
    ) -> None:
        """Attach the final cost of a call to its conversation."""

    @abstractmethod
    async def list_conversations(
        self,
        started_after: datetime,
        started_before: datetime | None = None,
        *,
        min_cost: float | None = None,
    ) -> list[Conversation]:
        """List conversations started in a window, optionally above a cost."""

    @abstractmethod
    async def track_event(
        self, event_type: str, properties: dict, conversation_id: str | None = None
    ) -> None:
        """Persist an analytics record."""

    @abstractmethod
    async def list_events(
        self, event_types: list[str], since: datetime, limit: int = 1000
    ) -> list[AnalyticsEvent]:
        """List analytics records of the given types since a timestamp."""

    @abstractmethod
    async def search_products(self, query: str, limit: int = 10) -> list[dict]:
        """Search products by name, brand or category."""

    @abstractmethod
    async def get_product(self, sku_or_name: str) -> dict | None:
        """Exact product lookup by SKU or name."""

    @abstractmethod
    async def get_customer_by_phone(self, phone: str) -> dict | None:
        """Customer summary for a canonical phone number.

        Returns a dict with customer_name, customer_email, total_orders,
        total_spent, average_order_value and last_order_date, or None.
        """

    @abstractmethod
    async def get_customer_order_history(self, phone: str, limit: int = 10) -> list[dict]:
        """Most recent orders first for a canonical phone number."""

    @abstractmethod
    async def get_order(self, order_number: str) -> dict | None:
        """Get an order by its order number."""

    @abstractmethod
    async def get_order_by_tracking_number(self, tracking_number: str) -> dict | None:
        """Get a shipped order by its courier tracking number."""

    @abstractmethod
    async def update_order_status(
        self, order_number: str, status: str, updates: dict | None = None
    ) -> dict | None:
        """Set an order's status (plus any extra fields) and return the updated order.

        Returns None when no order has that number.
        """

    @abstractmethod
    async def check_availability(
        self, appointment_time: datetime, duration_minutes: int = 30
    ) -> bool:
        """Whether an appointment slot is free."""

    @abstractmethod
    async def create_appointment(self, appointment: dict) -> dict:
        """Persist an appointment and return it with its id."""
