"""Order status lookup, courier tracking and status updates."""

from callhub.cache.manager import CacheManager
from callhub.conversation.models import CallContext
from callhub.datastore.base import ConversationDatastore
from callhub.functions.base import FunctionHandler
from callhub.utils.logging import get_logger

logger = get_logger(__name__)

_STATUS_MESSAGES = {
    "processing": "is being processed",
    "shipped": "has been shipped",
    "ready": "is ready for pickup at our store",
    "delivered": "has been delivered",
    "cancelled": "was cancelled",
    "in_transit": "is in transit",
    "arrived": "has arrived at our store",
    "ready_for_pickup": "is ready for pickup at our store",
}

# Statuses after which the customer should be told to come by the store
PICKUP_STATUSES = frozenset({"arrived", "ready_for_pickup"})


class CheckOrderStatus(FunctionHandler):
    name = "checkOrderStatus"
    ttl_seconds = 120  # order status changes
    fallback_message = (
        "I'm having trouble accessing our order system right now. "
        "Please call us at 77-111-104 with your order number."
    )

    def __init__(self, datastore: ConversationDatastore):
        self._datastore = datastore

    async def execute(self, params: dict, context: CallContext) -> dict:
        result = await self._lookup(params.get("order_number"), context)
        # Without an explicit number the answer depends on who is calling
        if not params.get("order_number"):
            result["personalized"] = True
        return result

    async def _lookup(self, order_number: str | None, context: CallContext) -> dict:
        # Trusted callers may ask about their latest order without a number
        if not order_number:
            customer = context.customer_context
            if customer is not None and customer.can_skip_verification and customer.recent_orders:
                order_number = customer.recent_orders[0].get("order_number")
        if not order_number:
            return {
                "found": False,
                "message": "Could you tell me your order number?",
                "requires_input": True,
            }

        order = await self._datastore.get_order(order_number)
        if order is None:
            return {
                "found": False,
                "message": f"I couldn't find order {order_number}. Could you double-check the number?",
            }

        status = order.get("status", "processing")
        return {
            "found": True,
            "order_number": order["order_number"],
            "status": status,
            "message": f"Order {order['order_number']} {_STATUS_MESSAGES.get(status, f'is {status}')}.",
        }


class TrackOrder(FunctionHandler):
    name = "trackOrder"
    ttl_seconds = 300
    fallback_message = (
        "I'm having trouble accessing tracking information. "
        "Please call us at 77-111-104 or check with the courier directly."
    )

    def __init__(self, datastore: ConversationDatastore):
        self._datastore = datastore

    async def execute(self, params: dict, context: CallContext) -> dict:
        tracking_number = params.get("tracking_number")
        order_number = params.get("order_number")
        if not tracking_number and not order_number:
            return {
                "found": False,
                "message": "I need a tracking number or order number to provide tracking information.",
                "requires_input": True,
            }

        if tracking_number:
            order = await self._datastore.get_order_by_tracking_number(str(tracking_number))
        else:
            order = await self._datastore.get_order(str(order_number))

        if order is None or not order.get("tracking_number"):
            return {
                "found": False,
                "message": (
                    "I couldn't find tracking information for that number. "
                    "The order may not have shipped yet."
                ),
                "search_term": tracking_number or order_number,
            }

        status = order.get("status", "processing")
        message = (
            f"Your package with tracking number {order['tracking_number']} "
            f"{_STATUS_MESSAGES.get(status, f'is {status}')}."
        )
        if order.get("estimated_delivery"):
            message += f" Estimated delivery: {order['estimated_delivery']}."
        return {
            "found": True,
            "tracking": {
                "tracking_number": order["tracking_number"],
                "order_number": order["order_number"],
                "status": status,
                "carrier": order.get("carrier"),
                "estimated_delivery": order.get("estimated_delivery"),
            },
            "message": message,
        }


class UpdateOrderStatus(FunctionHandler):
    """Internal write used by store staff systems, never memoized.

    Drops the memoized lookups for the order so callers see the new status.
    """

    name = "updateOrderStatus"
    ttl_seconds = 0
    cacheable = False
    fallback_message = (
        "I'm having trouble updating the order status. Please contact our customer service team."
    )

    def __init__(self, datastore: ConversationDatastore, cache: CacheManager | None = None):
        self._datastore = datastore
        self._cache = cache

    async def execute(self, params: dict, context: CallContext) -> dict:
        new_status = (params.get("new_status") or "").strip().lower()
        reference = params.get("order_number") or params.get("tracking_number")
        if not reference or not new_status:
            return {
                "error": True,
                "message": "An order or tracking number and the new status are required.",
                "requires_input": True,
            }
        if new_status not in _STATUS_MESSAGES:
            return {"error": True, "message": f"Unknown order status '{new_status}'."}

        order = await self._datastore.get_order(str(reference))
        if order is None:
            order = await self._datastore.get_order_by_tracking_number(str(reference))
        if order is None:
            return {"success": False, "message": f"I couldn't find order {reference}."}

        updates = {k: params[k] for k in ("location", "estimated_delivery") if params.get(k)}
        updated = await self._datastore.update_order_status(order["order_number"], new_status, updates)
        await self._invalidate(updated)

        notify = new_status in PICKUP_STATUSES
        logger.info(
            "order_status_updated",
            order_number=updated["order_number"],
            status=new_status,
            notify_customer=notify,
        )
        return {
            "success": True,
            "order_number": updated["order_number"],
            "status": new_status,
            "message": f"Order {updated['order_number']} updated to {new_status}.",
            "customer_notification_due": notify,
        }

    async def _invalidate(self, order: dict) -> None:
        if self._cache is None:
            return
        keys = [
            CacheManager.function_key(CheckOrderStatus.name, {"order_number": order["order_number"]}),
            CacheManager.function_key(TrackOrder.name, {"order_number": order["order_number"]}),
        ]
        if order.get("tracking_number"):
            keys.append(
                CacheManager.function_key(TrackOrder.name, {"tracking_number": order["tracking_number"]})
            )
        for key in keys:
            await self._cache.delete(key)
