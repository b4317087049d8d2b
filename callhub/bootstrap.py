"""Service wiring.

Builds every long-lived component once from Settings. Tests pass their own
datastore/remote/search to get a fully in-process graph.
"""

from dataclasses import dataclass

from callhub.cache.local import LocalCache
from callhub.cache.manager import CacheManager
from callhub.cache.remote import RedisRemoteStore, RemoteStore
from callhub.config import Settings
from callhub.costs.service import CostAccountingService
from callhub.customers.resolver import CustomerResolver
from callhub.datastore.base import ConversationDatastore
from callhub.datastore.inmemory import InMemoryDatastore
from callhub.functions.catalog import build_default_registry
from callhub.functions.registry import FunctionRegistry
from callhub.search.client import HttpProductSearch, ProductSearch
from callhub.telemetry import Telemetry
from callhub.utils.logging import get_logger
from callhub.webhook.gateway import WebhookGateway

logger = get_logger(__name__)


@dataclass
class Services:
    datastore: ConversationDatastore
    telemetry: Telemetry
    cache: CacheManager
    resolver: CustomerResolver
    costs: CostAccountingService
    registry: FunctionRegistry
    gateway: WebhookGateway
    search: ProductSearch | None = None

    async def close(self) -> None:
        await self.cache.close()
        if self.search is not None:
            await self.search.close()
        logger.info("services_closed")


def build_services(
    settings: Settings,
    datastore: ConversationDatastore | None = None,
    remote: RemoteStore | None = None,
    search: ProductSearch | None = None,
) -> Services:
    if datastore is None:
        logger.warning("datastore_in_memory", reason="no persistent datastore configured")
        datastore = InMemoryDatastore(default_region=settings.default_phone_region)

    if remote is None and settings.redis_url:
        remote = RedisRemoteStore.from_url(settings.redis_url)
    if remote is None:
        logger.info("cache_local_only")

    if search is None and settings.search_api_url:
        search = HttpProductSearch(
            settings.search_api_url,
            api_key=settings.search_api_key,
            timeout_seconds=settings.search_timeout_seconds,
        )

    telemetry = Telemetry(datastore)
    cache = CacheManager(
        local=LocalCache(
            max_entries=settings.local_cache_max_entries,
            default_ttl_seconds=settings.local_cache_ttl_seconds,
        ),
        remote=remote,
    )
    resolver = CustomerResolver(
        datastore,
        cache,
        telemetry,
        default_region=settings.default_phone_region,
        profile_ttl_seconds=settings.customer_profile_ttl_seconds,
    )
    costs = CostAccountingService(
        datastore,
        telemetry,
        cost_per_synthesis_char=settings.cost_per_synthesis_char,
        cost_per_recognition_second=settings.cost_per_recognition_second,
        cost_per_1k_model_tokens=settings.cost_per_1k_model_tokens,
        cost_per_platform_minute=settings.cost_per_platform_minute,
        currency=settings.cost_currency,
        alert_threshold=settings.cost_alert_threshold,
        monthly_budget=settings.monthly_budget,
        optimization_enabled=settings.enable_cost_optimization,
    )
    registry = build_default_registry(datastore, cache, telemetry, search)
    gateway = WebhookGateway(
        registry,
        cache,
        resolver,
        costs,
        datastore,
        telemetry,
        secret=settings.webhook_secret,
        signature_header=settings.signature_header,
        emergency_transfer_number=settings.emergency_transfer_number,
        general_transfer_number=settings.general_transfer_number,
    )

    logger.info(
        "services_built",
        functions=registry.list(),
        remote_cache=cache.remote_enabled,
        live_search=search is not None,
    )
    return Services(
        datastore=datastore,
        telemetry=telemetry,
        cache=cache,
        resolver=resolver,
        costs=costs,
        registry=registry,
        gateway=gateway,
        search=search,
    )
