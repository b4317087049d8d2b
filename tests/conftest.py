"""Shared fixtures: an in-process service graph with seeded data."""

from datetime import UTC, datetime, timedelta

import pytest

from callhub.cache.local import LocalCache
from callhub.cache.manager import CacheManager
from callhub.cache.remote import RemoteStore
from callhub.datastore.inmemory import InMemoryDatastore
from callhub.telemetry import Telemetry


class FakeRemoteStore(RemoteStore):
    """Dict-backed remote tier that ignores ttl."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ttl_seconds):
        self.data[key] = value

    async def delete(self, key):
        self.data.pop(key, None)

    async def close(self):
        self.closed = True


class FailingRemoteStore(RemoteStore):
    """Remote tier that is always unreachable."""

    async def get(self, key):
        raise ConnectionError("remote down")

    async def set(self, key, value, ttl_seconds):
        raise ConnectionError("remote down")

    async def delete(self, key):
        raise ConnectionError("remote down")

    async def close(self):
        pass


def seed_datastore(datastore: InMemoryDatastore) -> None:
    now = datetime.now(UTC)

    # Maria: 3 orders, last one yesterday
    for days_ago, total, product in [
        (1, 120.0, "Logitech MX Master Mouse"),
        (20, 80.0, "Corsair Gaming Keyboard"),
        (45, 300.0, "ASUS Monitor 27"),
    ]:
        datastore.add_order({
            "customer_phone": "99123456",
            "customer_name": "Maria Georgiou",
            "customer_email": "maria@example.com",
            "total": total,
            "created_at": now - timedelta(days=days_ago),
            "status": "shipped",
            "products": [{"name": product}],
        })

    # Nikos: one big order
    datastore.add_order({
        "customer_phone": "+357 96 555 111",
        "customer_name": "Νίκος Παπαδόπουλος",
        "total": 1450.0,
        "created_at": now - timedelta(days=3),
        "status": "processing",
        "products": [{"name": "MSI Gaming Laptop"}],
    })

    datastore.add_product({
        "sku": "RTX4090-ASUS",
        "name": "ASUS ROG Strix RTX 4090",
        "brand": "ASUS",
        "category": "graphics cards",
        "price": 1899.0,
        "stock_quantity": 4,
    })
    datastore.add_product({
        "sku": "K70-CORSAIR",
        "name": "Corsair K70 Keyboard",
        "brand": "Corsair",
        "category": "keyboards",
        "price": 149.0,
        "stock_quantity": 0,
    })


@pytest.fixture
def datastore():
    store = InMemoryDatastore()
    seed_datastore(store)
    return store


@pytest.fixture
def telemetry(datastore):
    return Telemetry(datastore)


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def cache():
    return CacheManager(local=LocalCache(max_entries=50))


@pytest.fixture
def two_tier_cache(remote):
    return CacheManager(local=LocalCache(max_entries=50), remote=remote)


@pytest.fixture
def failing_remote():
    return FailingRemoteStore()
