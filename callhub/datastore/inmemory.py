"""In-memory implementation of ConversationDatastore."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from callhub.conversation.models import AnalyticsEvent, Conversation, ConversationStatus
from callhub.customers.phone import normalize_phone
from callhub.datastore.base import ConversationDatastore

_CONVERSATION_FIELDS = {
    "phone",
    "status",
    "ended_at",
    "duration_seconds",
    "cost",
    "cost_breakdown",
    "transcript",
    "language_detected",
}


class InMemoryDatastore(ConversationDatastore):
    """In-memory datastore for testing and development.

    Uses plain dict/list storage with linear scans. Phone numbers are
    canonicalized on insert so lookups by canonical form always match.
    Not suitable for production use.
    """

    def __init__(self, default_region: str = "CY") -> None:
        self._region = default_region
        self._conversations: dict[str, Conversation] = {}
        self._events: list[AnalyticsEvent] = []
        self._products: list[dict] = []
        self._orders: list[dict] = []
        self._appointments: list[dict] = []

    # Seeding

    def add_product(self, product: dict) -> None:
        self._products.append(dict(product))

    def add_order(self, order: dict) -> None:
        stored = dict(order)
        stored["customer_phone"] = normalize_phone(order["customer_phone"], self._region)
        stored.setdefault("order_number", f"ORD-{len(self._orders) + 1:05d}")
        stored.setdefault("created_at", datetime.now(UTC))
        stored.setdefault("status", "processing")
        self._orders.append(stored)

    @property
    def events(self) -> list[AnalyticsEvent]:
        return list(self._events)

    # Conversations

    async def create_conversation(
        self, call_id: str, phone: str | None, metadata: dict | None = None
    ) -> Conversation:
        existing = self._conversations.get(call_id)
        if existing is not None:
            existing.metadata.update(metadata or {})
            if phone and not existing.phone:
                existing.phone = phone
            return existing
        conversation = Conversation(call_id=call_id, phone=phone, metadata=dict(metadata or {}))
        self._conversations[call_id] = conversation
        return conversation

    async def get_conversation(self, call_id: str) -> Conversation | None:
        return self._conversations.get(call_id)

    async def update_conversation(self, call_id: str, updates: dict) -> Conversation | None:
        conversation = self._conversations.get(call_id)
        if conversation is None:
            return None
        for key, value in updates.items():
            if key == "metadata":
                conversation.metadata.update(value)
            elif key == "functions_called":
                for name in value:
                    if name not in conversation.functions_called:
                        conversation.functions_called.append(name)
            elif key == "status":
                conversation.status = ConversationStatus(value)
            elif key in _CONVERSATION_FIELDS:
                setattr(conversation, key, value)
        return conversation

    async def update_call_cost(
        self, call_id: str, cost: float, breakdown: dict[str, float]
    ) -> None:
        await self.update_conversation(call_id, {"cost": cost, "cost_breakdown": breakdown})

    async def list_conversations(
        self,
        started_after: datetime,
        started_before: datetime | None = None,
        *,
        min_cost: float | None = None,
    ) -> list[Conversation]:
        results = []
        for conversation in self._conversations.values():
            if conversation.started_at < started_after:
                continue
            if started_before is not None and conversation.started_at > started_before:
                continue
            if min_cost is not None and (conversation.cost is None or conversation.cost <= min_cost):
                continue
            results.append(conversation)
        results.sort(key=lambda c: c.started_at)
        return results

    # Analytics

    async def track_event(
        self, event_type: str, properties: dict, conversation_id: str | None = None
    ) -> None:
        self._events.append(
            AnalyticsEvent(
                event_type=event_type,
                conversation_id=conversation_id,
                properties=dict(properties),
            )
        )

    async def list_events(
        self, event_types: list[str], since: datetime, limit: int = 1000
    ) -> list[AnalyticsEvent]:
        results = [
            e for e in self._events
            if e.event_type in event_types and e.timestamp >= since
        ]
        return results[:limit]

    # Products

    async def search_products(self, query: str, limit: int = 10) -> list[dict]:
        terms = [t for t in query.lower().split() if t]
        if not terms:
            return []
        results = []
        for product in self._products:
            haystack = " ".join(
                str(product.get(field, "")) for field in ("name", "brand", "category", "sku")
            ).lower()
            if all(term in haystack for term in terms):
                results.append(dict(product))
        return results[:limit]

    async def get_product(self, sku_or_name: str) -> dict | None:
        needle = sku_or_name.lower()
        for product in self._products:
            if str(product.get("sku", "")).lower() == needle or product.get("name", "").lower() == needle:
                return dict(product)
        return None

    # Customers and orders

    def _orders_for(self, phone: str) -> list[dict]:
        orders = [o for o in self._orders if o["customer_phone"] == phone]
        orders.sort(key=lambda o: o["created_at"], reverse=True)
        return orders

    async def get_customer_by_phone(self, phone: str) -> dict | None:
        orders = self._orders_for(phone)
        if not orders:
            return None
        total_spent = sum(float(o.get("total", 0)) for o in orders)
        return {
            "customer_name": orders[0].get("customer_name", ""),
            "customer_email": orders[0].get("customer_email"),
            "total_orders": len(orders),
            "total_spent": total_spent,
            "average_order_value": total_spent / len(orders),
            "last_order_date": orders[0]["created_at"],
        }

    async def get_customer_order_history(self, phone: str, limit: int = 10) -> list[dict]:
        return [dict(o) for o in self._orders_for(phone)[:limit]]

    async def get_order(self, order_number: str) -> dict | None:
        for order in self._orders:
            if order["order_number"].lower() == order_number.lower():
                return dict(order)
        return None

    async def get_order_by_tracking_number(self, tracking_number: str) -> dict | None:
        for order in self._orders:
            if order.get("tracking_number") and str(order["tracking_number"]) == tracking_number.strip():
                return dict(order)
        return None

    async def update_order_status(
        self, order_number: str, status: str, updates: dict | None = None
    ) -> dict | None:
        for order in self._orders:
            if order["order_number"].lower() == order_number.lower():
                order.update(updates or {})
                order["status"] = status
                order["updated_at"] = datetime.now(UTC)
                return dict(order)
        return None

    # Appointments

    async def check_availability(
        self, appointment_time: datetime, duration_minutes: int = 30
    ) -> bool:
        end = appointment_time + timedelta(minutes=duration_minutes)
        for appointment in self._appointments:
            booked_start = appointment["appointment_time"]
            booked_end = booked_start + timedelta(minutes=appointment.get("duration_minutes", 30))
            if booked_start < end and appointment_time < booked_end:
                return False
        return True

    async def create_appointment(self, appointment: dict) -> dict:
        stored = {"id": uuid4().hex, **appointment}
        self._appointments.append(stored)
        return dict(stored)
