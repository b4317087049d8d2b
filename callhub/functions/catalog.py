"""Builds the registry with every built-in operation."""

from callhub.cache.manager import CacheManager
from callhub.datastore.base import ConversationDatastore
from callhub.functions.appointments import BookAppointment, CheckAppointmentAvailability
from callhub.functions.base import FunctionHandler
from callhub.functions.inventory import CheckInventory, GetProductPrice, SearchLiveProducts
from callhub.functions.orders import CheckOrderStatus, TrackOrder, UpdateOrderStatus
from callhub.functions.registry import FunctionRegistry
from callhub.functions.store_info import GetDirections, GetStoreInfo
from callhub.search.client import ProductSearch
from callhub.telemetry import Telemetry


def default_handlers(
    datastore: ConversationDatastore,
    cache: CacheManager,
    search: ProductSearch | None = None,
) -> list[FunctionHandler]:
    return [
        GetStoreInfo(cache),
        GetDirections(),
        CheckInventory(datastore, search),
        GetProductPrice(datastore),
        SearchLiveProducts(search),
        CheckAppointmentAvailability(datastore),
        BookAppointment(datastore),
        CheckOrderStatus(datastore),
        TrackOrder(datastore),
        UpdateOrderStatus(datastore, cache),
    ]


def build_default_registry(
    datastore: ConversationDatastore,
    cache: CacheManager,
    telemetry: Telemetry,
    search: ProductSearch | None = None,
) -> FunctionRegistry:
    registry = FunctionRegistry(cache, telemetry)
    for handler in default_handlers(datastore, cache, search):
        registry.register(handler.name, handler)
    return registry
