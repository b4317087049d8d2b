#!/usr/bin/env python3
"""Local simulation: play a whole call through the webhook gateway.

Usage:
    python scripts/simulate_call.py

Runs entirely in-process against the in-memory datastore, so no Redis,
search API or voice platform is needed. Every event is signed the same way
the platform signs it.
"""

import asyncio
import json
import os
import sys
from datetime import UTC, datetime, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from callhub.bootstrap import build_services
from callhub.config import Settings
from callhub.datastore.inmemory import InMemoryDatastore
from callhub.utils.logging import setup_logging
from callhub.webhook.signature import compute_signature

SECRET = "local-simulation-secret"
CALL_ID = "sim-call-001"
CALLER = "+357 99 123456"


def seeded_datastore() -> InMemoryDatastore:
    datastore = InMemoryDatastore()
    now = datetime.now(UTC)
    for days_ago, total in [(2, 240.0), (30, 95.0), (90, 780.0)]:
        datastore.add_order({
            "customer_phone": "99123456",
            "customer_name": "Andreas Christou",
            "total": total,
            "created_at": now - timedelta(days=days_ago),
            "status": "shipped" if days_ago > 2 else "ready",
            "products": [{"name": "Logitech G502 Gaming Mouse"}],
        })
    datastore.add_product({
        "sku": "RTX4070-MSI",
        "name": "MSI GeForce RTX 4070",
        "brand": "MSI",
        "category": "graphics cards",
        "price": 649.0,
        "stock_quantity": 7,
    })
    return datastore


# (label, event) pairs in the order the platform would send them
CALL_SCRIPT = [
    ("call starts", {"type": "call-started", "call": {"id": CALL_ID, "customerNumber": CALLER}}),
    ("caller asks about opening hours", {
        "type": "function-call",
        "call": {"id": CALL_ID, "customerNumber": CALLER},
        "functionCall": {"name": "getStoreInfo", "parameters": {"info_type": "hours"}},
    }),
    ("caller asks for an RTX 4070", {
        "type": "function-call",
        "call": {"id": CALL_ID, "customerNumber": CALLER},
        "functionCall": {"name": "checkInventory", "parameters": {"product_name": "RTX 4070"}},
    }),
    ("same question again (memoized)", {
        "type": "function-call",
        "call": {"id": CALL_ID, "customerNumber": CALLER},
        "functionCall": {"name": "checkInventory", "parameters": {"product_name": "RTX 4070"}},
    }),
    ("caller asks where their order is", {
        "type": "function-call",
        "call": {"id": CALL_ID, "customerNumber": CALLER},
        "functionCall": {"name": "checkOrderStatus", "parameters": {}},
    }),
    ("caller wants a human", {
        "type": "transfer-destination-request",
        "call": {"id": CALL_ID},
        "functionCall": {"parameters": {"urgency": "medium"}},
    }),
    ("call ends", {
        "type": "call-ended",
        "call": {
            "id": CALL_ID,
            "duration": 184,
            "endedReason": "customer-ended-call",
            "costs": {"tts": 1450, "llm": 5200},
        },
    }),
]


async def simulate_call():
    print("=" * 60)
    print("  Call Hub: Local Simulation")
    print("=" * 60)
    print()

    settings = Settings(webhook_secret=SECRET, redis_url=None, search_api_url=None)
    setup_logging("WARNING")
    services = build_services(settings, datastore=seeded_datastore())
    await services.cache.warmup()

    for label, event in CALL_SCRIPT:
        raw = json.dumps(event).encode("utf-8")
        response = await services.gateway.handle(raw, compute_signature(raw, SECRET))
        print(f"[{event['type']}] {label}")
        print(f"  -> {response.status_code} {json.dumps(response.body, ensure_ascii=False)}")
        print()

    conversation = await services.datastore.get_conversation(CALL_ID)
    print("-" * 60)
    print(f"  Status:    {conversation.status.value}")
    print(f"  Functions: {', '.join(conversation.functions_called)}")
    print(f"  Cost:      {conversation.cost} {settings.cost_currency}")
    print(f"  Cache:     {services.cache.get_stats()}")
    print("-" * 60)

    await services.close()


if __name__ == "__main__":
    asyncio.run(simulate_call())
