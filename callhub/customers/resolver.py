"""Caller identification by phone number.

Resolves a canonical phone number to a CustomerProfile aggregated from
order history, caches it for a few minutes and produces personalized
greetings and a read-only context for function handlers.
"""

import json
from collections import Counter
from datetime import UTC, datetime

from callhub.cache.manager import CacheManager
from callhub.customers.models import (
    CustomerContext,
    CustomerPreferences,
    CustomerProfile,
    is_vip,
)
from callhub.customers.phone import normalize_phone, phone_cache_key
from callhub.datastore.base import ConversationDatastore
from callhub.telemetry import Telemetry
from callhub.utils.language import detect_language
from callhub.utils.logging import get_logger

logger = get_logger(__name__)

PROFILE_TTL_SECONDS = 300
ORDER_HISTORY_LIMIT = 10
PROFILE_ORDER_HISTORY = 5
TRUSTED_MIN_ORDERS = 2

STORE_NAME = "Armenius Store"

_CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("laptops", ("laptop", "notebook")),
    ("accessories", ("mouse", "keyboard")),
    ("audio", ("headphone", "speaker")),
    ("monitors", ("monitor", "display")),
    ("gaming", ("gaming",)),
]

_KNOWN_BRANDS = ("asus", "msi", "corsair", "logitech", "razer", "amd", "nvidia", "intel")

_GREETINGS = {
    "en": {
        "vip": (
            "Hello {first_name}! Great to hear from you again. You're one of our "
            "most valued customers at {store}, and your last order was {recency}. "
            "How can I assist you today?"
        ),
        "returning": (
            "Welcome back {first_name}! I see you placed an order with us {recency}. "
            "How can I help you today?"
        ),
        "new": "Hello {first_name}! Thank you for contacting {store}. How can I assist you today?",
    },
    "el": {
        "vip": (
            "Γεια σας {first_name}! Χαίρομαι που σας ακούω πάλι. Είστε ένας από τους "
            "πιο εκτιμημένους πελάτες μας στο {store}, η τελευταία σας παραγγελία ήταν {recency}. "
            "Πώς μπορώ να σας βοηθήσω σήμερα;"
        ),
        "returning": (
            "Καλώς ήρθατε πίσω {first_name}! Βλέπω ότι είχατε παραγγελία μαζί μας {recency}. "
            "Πώς μπορώ να σας εξυπηρετήσω σήμερα;"
        ),
        "new": (
            "Γεια σας {first_name}! Χαίρομαι που επικοινωνείτε μαζί μας στο {store}. "
            "Πώς μπορώ να σας βοηθήσω σήμερα;"
        ),
    },
}

_RECENCY = {
    "en": {
        "today": "today",
        "yesterday": "yesterday",
        "days": "{n} days ago",
        "weeks": "{n} weeks ago",
        "months": "{n} months ago",
    },
    "el": {
        "today": "σήμερα",
        "yesterday": "χθες",
        "days": "πριν {n} μέρες",
        "weeks": "πριν {n} εβδομάδες",
        "months": "πριν {n} μήνες",
    },
}


def _as_datetime(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_recency(last_order: datetime | None, language: str = "en", now: datetime | None = None) -> str:
    """Relative phrase for how long ago an order was placed."""
    if last_order is None:
        return ""
    phrases = _RECENCY.get(language, _RECENCY["en"])
    now = now or datetime.now(UTC)
    days = max((now - last_order).days, 0)

    if days == 0:
        return phrases["today"]
    if days == 1:
        return phrases["yesterday"]
    if days < 7:
        return phrases["days"].format(n=days)
    if days < 30:
        return phrases["weeks"].format(n=days // 7)
    return phrases["months"].format(n=days // 30)


def _infer_category(product_name: str) -> str:
    name = product_name.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(k in name for k in keywords):
            return category
    return "general"


def _infer_brand(product_name: str) -> str | None:
    name = product_name.lower()
    return next((b for b in _KNOWN_BRANDS if b in name), None)


def extract_preferences(order_history: list[dict]) -> CustomerPreferences:
    """Count product categories and brands across past orders."""
    categories: Counter[str] = Counter()
    brands: Counter[str] = Counter()

    for order in order_history:
        products = order.get("products") or []
        if isinstance(products, str):
            try:
                products = json.loads(products)
            except json.JSONDecodeError:
                continue
        for product in products:
            name = product.get("name", "") if isinstance(product, dict) else str(product)
            categories[_infer_category(name)] += 1
            brand = _infer_brand(name)
            if brand:
                brands[brand] += 1

    return CustomerPreferences(categories=dict(categories), brands=dict(brands))


class CustomerResolver:
    """Identifies callers and builds their profiles."""

    def __init__(
        self,
        datastore: ConversationDatastore,
        cache: CacheManager,
        telemetry: Telemetry,
        default_region: str = "CY",
        profile_ttl_seconds: int = PROFILE_TTL_SECONDS,
    ):
        self._datastore = datastore
        self._cache = cache
        self._telemetry = telemetry
        self._region = default_region
        self._ttl = profile_ttl_seconds

    def normalize(self, phone_number: str | None) -> str:
        return normalize_phone(phone_number, self._region)

    async def identify(
        self, phone_number: str | None, conversation_id: str | None = None
    ) -> CustomerProfile | None:
        """Resolve a caller's profile, or None if unknown or unavailable."""
        canonical = self.normalize(phone_number)
        if not canonical:
            return None

        cache_key = phone_cache_key(canonical)
        try:
            cached = await self._cache.get(cache_key)
            if cached is not None:
                profile = CustomerProfile.model_validate(cached)
            else:
                profile = await self._lookup(canonical)
                if profile is not None:
                    await self._cache.set(cache_key, profile.model_dump(mode="json"), self._ttl)
        except Exception as e:
            logger.warning("customer_identification_failed", phone=canonical, error=str(e))
            await self._telemetry.record(
                "customer_identification_failed",
                {"phone": canonical, "error": str(e)},
                conversation_id,
            )
            return None

        if profile is None:
            logger.info("customer_not_found", phone=canonical)
            return None

        await self._telemetry.record(
            "customer_identified",
            {
                "phone": canonical,
                "total_orders": profile.total_orders,
                "total_spent": profile.total_spent,
                "is_vip": profile.is_vip,
            },
            conversation_id,
        )
        return profile

    async def _lookup(self, canonical: str) -> CustomerProfile | None:
        customer = await self._datastore.get_customer_by_phone(canonical)
        if customer is None:
            return None

        history = await self._datastore.get_customer_order_history(canonical, ORDER_HISTORY_LIMIT)
        name = customer.get("customer_name") or ""
        total_orders = int(customer.get("total_orders") or 0)
        total_spent = float(customer.get("total_spent") or 0)

        return CustomerProfile(
            normalized_phone=canonical,
            name=name,
            email=customer.get("customer_email"),
            total_orders=total_orders,
            total_spent=total_spent,
            average_order_value=float(customer.get("average_order_value") or 0),
            last_order_date=_as_datetime(customer.get("last_order_date")),
            preferred_language=detect_language(name),
            is_vip=is_vip(total_orders, total_spent),
            order_history=[_summarize_order(o) for o in history[:PROFILE_ORDER_HISTORY]],
            preferences=extract_preferences(history),
        )

    def generate_greeting(
        self, profile: CustomerProfile | None, language: str = "en", now: datetime | None = None
    ) -> str | None:
        """Pick a greeting by customer tier and language."""
        if profile is None:
            return None

        templates = _GREETINGS.get(language, _GREETINGS["en"])
        # vip and returning templates need a recency phrase
        if profile.last_order_date is None:
            tier = "new"
        elif profile.is_vip:
            tier = "vip"
        elif profile.total_orders > 1:
            tier = "returning"
        else:
            tier = "new"

        return templates[tier].format(
            first_name=profile.name.split(" ")[0] if profile.name else "",
            store=STORE_NAME,
            recency=format_recency(profile.last_order_date, language, now),
        )

    def get_context(self, profile: CustomerProfile | None) -> CustomerContext | None:
        if profile is None:
            return None
        return CustomerContext(
            name=profile.name,
            is_returning_customer=profile.total_orders > 0,
            is_vip=profile.is_vip,
            preferred_language=profile.preferred_language,
            recent_orders=profile.order_history[:3],
            preferences=profile.preferences,
            can_skip_verification=profile.total_orders > TRUSTED_MIN_ORDERS,
        )


def _summarize_order(order: dict) -> dict:
    created_at = _as_datetime(order.get("created_at"))
    return {
        "order_number": order.get("order_number"),
        "status": order.get("status"),
        "total": float(order.get("total") or 0),
        "created_at": created_at.isoformat() if created_at else None,
    }
