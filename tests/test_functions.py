"""Tests for the built-in operations."""

from unittest.mock import AsyncMock

import pytest

from callhub.cache.warmup import STORE_INFO
from callhub.conversation.models import CallContext
from callhub.customers.models import CustomerContext
from callhub.errors import DependencyError
from callhub.functions.appointments import BookAppointment, CheckAppointmentAvailability, parse_slot
from callhub.functions.catalog import build_default_registry
from callhub.functions.fallback import FallbackChain, FallbackTier
from callhub.functions.inventory import (
    CheckInventory,
    GetProductPrice,
    SearchLiveProducts,
    normalize_search_term,
    quantity_discount,
)
from callhub.functions.orders import CheckOrderStatus, TrackOrder, UpdateOrderStatus
from callhub.functions.store_info import MAPS_LINK, GetDirections, GetStoreInfo, resolve_topic
from callhub.search.client import ProductSearch, SearchCandidate


class StubSearch(ProductSearch):
    def __init__(self, candidates=None, error=None):
        self.candidates = candidates or []
        self.error = error
        self.queries = []

    async def query(self, text, limit=3):
        self.queries.append(text)
        if self.error:
            raise self.error
        return self.candidates[:limit]

    async def close(self):
        pass


class TestFallbackChain:
    @pytest.mark.asyncio
    async def test_first_result_wins(self):
        chain = FallbackChain([
            FallbackTier("a", AsyncMock(return_value=None)),
            FallbackTier("b", AsyncMock(return_value={"v": 2})),
            FallbackTier("c", AsyncMock(return_value={"v": 3})),
        ])
        assert await chain.run() == {"v": 2, "source": "b"}
        assert chain.tier_names == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_raising_tier_is_skipped(self):
        chain = FallbackChain([
            FallbackTier("a", AsyncMock(side_effect=RuntimeError("boom"))),
            FallbackTier("b", AsyncMock(return_value={"v": 2})),
        ])
        assert (await chain.run())["source"] == "b"

    def test_needs_a_tier(self):
        with pytest.raises(ValueError):
            FallbackChain([])


class TestCheckInventory:
    @pytest.mark.asyncio
    async def test_local_catalogue(self, datastore):
        handler = CheckInventory(datastore)
        result = await handler.execute({"product_name": "RTX 4090"}, CallContext())
        assert result["source"] == "local_catalogue"
        assert result["available"] is True
        assert result["product"]["sku"] == "RTX4090-ASUS"
        assert "4 units" in result["message"]

    @pytest.mark.asyncio
    async def test_by_sku_out_of_stock(self, datastore):
        handler = CheckInventory(datastore)
        result = await handler.execute({"product_sku": "K70-CORSAIR"}, CallContext())
        assert result["available"] is False
        assert "out of stock" in result["message"]

    @pytest.mark.asyncio
    async def test_live_search_when_catalogue_misses(self, datastore):
        search = StubSearch([SearchCandidate(name="Logitech G Pro X", price=129.0, url="https://example.com/g-pro")])
        handler = CheckInventory(datastore, search)
        result = await handler.execute({"product_name": "G Pro X"}, CallContext())
        assert result["source"] == "live_search"
        assert result["live_data"] is True
        assert "€129.00" in result["message"]

    @pytest.mark.asyncio
    async def test_static_when_search_fails(self, datastore):
        search = StubSearch(error=DependencyError("product_search", "timeout"))
        handler = CheckInventory(datastore, search)
        result = await handler.execute({"product_name": "Steam Deck"}, CallContext())
        assert result["source"] == "static"
        assert result["system_issue"] is True
        assert "77-111-104" in result["message"]

    @pytest.mark.asyncio
    async def test_greek_query(self, datastore):
        handler = CheckInventory(datastore)
        result = await handler.execute({"product_name": "κάρτα γραφικών"}, CallContext())
        assert result["language"] == "el"

    @pytest.mark.asyncio
    async def test_requires_input(self, datastore):
        result = await CheckInventory(datastore).execute({}, CallContext())
        assert result["requires_input"] is True

    def test_normalize_search_term(self):
        assert normalize_search_term("  RTX-4090!! Ti ") == "rtx 4090 ti"


class TestSearchLiveProducts:
    @pytest.mark.asyncio
    async def test_results(self):
        search = StubSearch([SearchCandidate(name="A"), SearchCandidate(name="B")])
        result = await SearchLiveProducts(search).execute({"product_query": "mouse"}, CallContext())
        assert [p["name"] for p in result["products"]] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_unconfigured_raises(self):
        with pytest.raises(DependencyError):
            await SearchLiveProducts(None).execute({"product_query": "mouse"}, CallContext())


class TestStoreInfo:
    @pytest.mark.asyncio
    async def test_served_from_warm_cache(self, cache):
        await cache.warmup()
        result = await GetStoreInfo(cache).execute({"info_type": "hours"}, CallContext())
        assert result["cached"] is True
        assert result["type"] == "hours"

    @pytest.mark.asyncio
    async def test_cold_cache_uses_static_text(self, cache):
        result = await GetStoreInfo(cache).execute({"info_type": "services"}, CallContext())
        assert "computer repairs" in result["message"]

    @pytest.mark.asyncio
    async def test_greek_from_transcript(self, cache):
        result = await GetStoreInfo(cache).execute({}, CallContext(transcript="Τι ώρες είστε ανοιχτά;"))
        assert result["language"] == "el"
        assert result["type"] == "general"

    @pytest.mark.asyncio
    async def test_warm_and_cold_answers_agree(self, cache):
        cold = await GetStoreInfo(cache).execute({"info_type": "hours", "language": "el"}, CallContext())
        await cache.warmup()
        warm = await GetStoreInfo(cache).execute({"info_type": "hours", "language": "el"}, CallContext())
        assert cold["message"] == warm["message"] == STORE_INFO["hours"]["el"]
        assert "cached" not in cold
        assert warm["cached"] is True

    def test_resolve_topic(self):
        assert resolve_topic("opening hours") == "hours"
        assert resolve_topic("διεύθυνση") == "location"
        assert resolve_topic(None) == "general"


class TestDirections:
    @pytest.mark.asyncio
    async def test_by_car(self):
        result = await GetDirections().execute({"transport_method": "car"}, CallContext())
        assert result["type"] == "directions"
        assert result["language"] == "en"
        assert result["message"].startswith("We are located at 171 Makarios Avenue")
        assert "By car" in result["message"]
        assert result["location"] == STORE_INFO["location"]["en"]
        assert result["maps_link"] == MAPS_LINK

    @pytest.mark.asyncio
    async def test_greek_by_bus(self):
        result = await GetDirections().execute(
            {"from_location": "Λάρνακα", "transport_method": "λεωφορείο"}, CallContext()
        )
        assert result["language"] == "el"
        assert "Με λεωφορείο" in result["message"]

    @pytest.mark.asyncio
    async def test_unknown_transport_gets_general_directions(self):
        result = await GetDirections().execute({"transport_method": "bicycle"}, CallContext())
        assert "public transport" in result["message"]


class TestProductPrice:
    @pytest.mark.asyncio
    async def test_single_unit(self, datastore):
        result = await GetProductPrice(datastore).execute({"product_identifier": "RTX4090-ASUS"}, CallContext())
        assert result["found"] is True
        assert result["product"]["unit_price"] == 1899.0
        assert result["product"]["total_price"] == 1899.0
        assert result["product"]["discount"] == 0.0
        assert "discount" not in result["message"]

    @pytest.mark.asyncio
    async def test_bulk_discount(self, datastore):
        result = await GetProductPrice(datastore).execute(
            {"product_identifier": "K70-CORSAIR", "quantity": 12}, CallContext()
        )
        assert result["product"]["discount"] == 0.10
        assert result["product"]["unit_price"] == pytest.approx(134.1)
        assert result["product"]["total_price"] == pytest.approx(1609.2)
        assert "(10% discount for 10+ items)" in result["message"]

    @pytest.mark.asyncio
    async def test_several_matches_listed(self, datastore):
        datastore.add_product({"sku": "RTX4070-ASUS", "name": "ASUS TUF RTX 4070", "brand": "ASUS", "price": 649.0})
        result = await GetProductPrice(datastore).execute({"product_identifier": "asus"}, CallContext())
        assert result["multiple_matches"] is True
        assert [p["sku"] for p in result["products"]] == ["RTX4090-ASUS", "RTX4070-ASUS"]

    @pytest.mark.asyncio
    async def test_not_found(self, datastore):
        result = await GetProductPrice(datastore).execute({"product_identifier": "PlayStation 9"}, CallContext())
        assert result["found"] is False
        assert result["search_term"] == "PlayStation 9"

    @pytest.mark.asyncio
    async def test_identifier_required(self, datastore):
        result = await GetProductPrice(datastore).execute({}, CallContext())
        assert result["error"] is True
        assert result["requires_input"] is True

    def test_discount_tiers(self):
        assert quantity_discount(1) == (1, 0.0)
        assert quantity_discount(5) == (5, 0.05)
        assert quantity_discount(10) == (10, 0.10)

    def test_registered_with_short_ttl(self, datastore, cache, telemetry):
        registry = build_default_registry(datastore, cache, telemetry)
        assert registry.get("getProductPrice").ttl_seconds == 180
        assert registry.get("getProductPrice").memoized is True


class TestAppointments:
    @pytest.mark.asyncio
    async def test_booking_is_never_memoized(self, datastore, cache, telemetry):
        registry = build_default_registry(datastore, cache, telemetry)
        params = {"customer_name": "Maria Georgiou", "customer_phone": "99123456", "date": "2030-03-14", "time": "10:00"}

        first = await registry.execute("bookAppointment", params)
        second = await registry.execute("bookAppointment", params)

        assert first["success"] is True
        # Same slot is now taken, so the second call really ran
        assert second["success"] is False
        assert registry.get("bookAppointment").memoized is False

    @pytest.mark.asyncio
    async def test_booking_uses_caller_number(self, datastore):
        handler = BookAppointment(datastore)
        result = await handler.execute(
            {"customer_name": "Maria", "date": "2030-03-14", "time": "11:00"},
            CallContext(customer_number="+35799123456", call_id="call-1"),
        )
        assert result["success"] is True

    @pytest.mark.asyncio
    async def test_booking_missing_fields(self, datastore):
        result = await BookAppointment(datastore).execute({"date": "2030-03-14"}, CallContext())
        assert result["error"] is True
        assert set(result["missing"]) == {"customer_name", "customer_phone"}

    @pytest.mark.asyncio
    async def test_availability_closed_on_sunday(self, datastore):
        # 2030-03-17 is a Sunday
        result = await CheckAppointmentAvailability(datastore).execute(
            {"date": "2030-03-17", "time": "10:00"}, CallContext()
        )
        assert result["available"] is False

    @pytest.mark.asyncio
    async def test_availability_open_slot(self, datastore):
        result = await CheckAppointmentAvailability(datastore).execute(
            {"date": "2030-03-14", "time": "15:00"}, CallContext()
        )
        assert result["available"] is True

    def test_parse_slot_default_time(self):
        assert parse_slot("2030-03-14", None).hour == 10


class TestOrderStatus:
    @pytest.mark.asyncio
    async def test_by_number(self, datastore):
        result = await CheckOrderStatus(datastore).execute({"order_number": "ORD-00001"}, CallContext())
        assert result["found"] is True
        assert result["status"] == "shipped"

    @pytest.mark.asyncio
    async def test_trusted_caller_without_number(self, datastore):
        context = CallContext(
            customer_context=CustomerContext(
                name="Maria",
                is_returning_customer=True,
                is_vip=False,
                preferred_language="en",
                recent_orders=[{"order_number": "ORD-00004", "status": "processing"}],
                can_skip_verification=True,
            )
        )
        result = await CheckOrderStatus(datastore).execute({}, context)
        assert result["order_number"] == "ORD-00004"
        assert result["status"] == "processing"

    @pytest.mark.asyncio
    async def test_untrusted_caller_asked_for_number(self, datastore):
        result = await CheckOrderStatus(datastore).execute({}, CallContext())
        assert result["requires_input"] is True

    @pytest.mark.asyncio
    async def test_unknown_order(self, datastore):
        result = await CheckOrderStatus(datastore).execute({"order_number": "ORD-99999"}, CallContext())
        assert result["found"] is False


@pytest.fixture
def shipped_order(datastore):
    datastore.add_order({
        "customer_phone": "99123456",
        "order_number": "ARM-1004",
        "status": "in_transit",
        "tracking_number": "1004",
        "carrier": "ACS Courier",
        "estimated_delivery": "2030-03-18",
    })
    return "ARM-1004"


class TestTrackOrder:
    @pytest.mark.asyncio
    async def test_by_tracking_number(self, datastore, shipped_order):
        result = await TrackOrder(datastore).execute({"tracking_number": "1004"}, CallContext())
        assert result["found"] is True
        assert result["tracking"]["order_number"] == shipped_order
        assert result["tracking"]["carrier"] == "ACS Courier"
        assert result["message"] == (
            "Your package with tracking number 1004 is in transit. Estimated delivery: 2030-03-18."
        )

    @pytest.mark.asyncio
    async def test_by_order_number(self, datastore, shipped_order):
        result = await TrackOrder(datastore).execute({"order_number": "arm-1004"}, CallContext())
        assert result["tracking"]["tracking_number"] == "1004"

    @pytest.mark.asyncio
    async def test_order_not_shipped_yet(self, datastore):
        result = await TrackOrder(datastore).execute({"order_number": "ORD-00001"}, CallContext())
        assert result["found"] is False
        assert "may not have shipped yet" in result["message"]

    @pytest.mark.asyncio
    async def test_number_required(self, datastore):
        result = await TrackOrder(datastore).execute({}, CallContext())
        assert result["requires_input"] is True


class TestUpdateOrderStatus:
    @pytest.mark.asyncio
    async def test_status_written(self, datastore, cache, shipped_order):
        result = await UpdateOrderStatus(datastore, cache).execute(
            {"tracking_number": "1004", "new_status": "arrived", "location": "Armenius Store"}, CallContext()
        )
        assert result["success"] is True
        assert result["customer_notification_due"] is True
        order = await datastore.get_order(shipped_order)
        assert order["status"] == "arrived"
        assert order["location"] == "Armenius Store"

    @pytest.mark.asyncio
    async def test_never_memoized(self, datastore, cache, telemetry):
        registry = build_default_registry(datastore, cache, telemetry)
        assert registry.get("updateOrderStatus").memoized is False

        first = await registry.execute("updateOrderStatus", {"order_number": "ORD-00004", "new_status": "shipped"})
        second = await registry.execute("updateOrderStatus", {"order_number": "ORD-00004", "new_status": "shipped"})

        assert first["success"] is True
        assert second["success"] is True
        assert telemetry.count("cache_hit") == 0
        assert telemetry.count("function_call") == 2
        assert cache.get_stats()["local"]["size"] == 0

    @pytest.mark.asyncio
    async def test_memoized_lookup_refreshed_after_update(self, datastore, cache, telemetry):
        registry = build_default_registry(datastore, cache, telemetry)
        before = await registry.execute("checkOrderStatus", {"order_number": "ORD-00004"})
        await registry.execute("updateOrderStatus", {"order_number": "ORD-00004", "new_status": "ready_for_pickup"})
        after = await registry.execute("checkOrderStatus", {"order_number": "ORD-00004"})

        assert before["status"] == "processing"
        assert after["status"] == "ready_for_pickup"

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, datastore, cache):
        result = await UpdateOrderStatus(datastore, cache).execute(
            {"order_number": "ORD-00004", "new_status": "teleported"}, CallContext()
        )
        assert result["error"] is True
        order = await datastore.get_order("ORD-00004")
        assert order["status"] == "processing"

    @pytest.mark.asyncio
    async def test_unknown_order(self, datastore, cache):
        result = await UpdateOrderStatus(datastore, cache).execute(
            {"order_number": "ORD-99999", "new_status": "shipped"}, CallContext()
        )
        assert result["success"] is False


class TestCatalog:
    def test_all_operations_registered(self, datastore, cache, telemetry):
        registry = build_default_registry(datastore, cache, telemetry)
        assert set(registry.list()) == {
            "getStoreInfo",
            "getDirections",
            "checkInventory",
            "getProductPrice",
            "searchLiveProducts",
            "checkAppointmentAvailability",
            "bookAppointment",
            "checkOrderStatus",
            "trackOrder",
            "updateOrderStatus",
        }
