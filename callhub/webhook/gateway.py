"""Webhook gateway: authenticates, parses and routes platform events.

Response contract:
- bad or missing signature -> 401, no handler runs
- malformed payload -> 200 with an embedded ``error`` object
- every routed or unknown event type -> 200 (business failures are
  embedded in the body so the platform does not redeliver)
- anything unexpected -> 500 with a minimal message

Each request produces exactly one ``webhook_*`` analytics record, emitted
at this boundary right before the response is returned.
"""

import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from pydantic import ValidationError

from callhub.cache.manager import CacheManager
from callhub.conversation.models import CallContext, ConversationStatus
from callhub.costs.models import UsageRecord
from callhub.costs.service import CostAccountingService
from callhub.customers.resolver import CustomerResolver
from callhub.datastore.base import ConversationDatastore
from callhub.errors import AuthenticationError, DependencyError, PayloadValidationError
from callhub.functions.registry import UNKNOWN_FUNCTION_MESSAGE, FunctionRegistry, fallback_result
from callhub.telemetry import Telemetry
from callhub.utils.language import detect_language, detect_language_from_result
from callhub.utils.logging import get_logger
from callhub.webhook.models import CallEvent, CallInfo, EventKind
from callhub.webhook.signature import verify_signature

logger = get_logger(__name__)

INTERNAL_ERROR_BODY = {
    "error": "Internal server error",
    "message": "Something went wrong processing your request",
}

EMERGENCY_URGENCIES = {"critical", "emergency"}


@dataclass
class GatewayResponse:
    status_code: int
    body: dict


@dataclass
class RouteOutcome:
    """What a route produced; turned into a response at the boundary."""
    body: dict
    outcome: str = "ok"  # "ok", "fallback", "degraded", "invalid", "ignored"
    properties: dict = field(default_factory=dict)
    conversation_id: str | None = None


def _event_name(event_type: str) -> str:
    return "webhook_" + event_type.replace("-", "_")


def _text_of(value) -> str | None:
    """Pull plain text out of a transcript/message payload."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in ("transcript", "text", "content"):
            if isinstance(value.get(key), str):
                return value[key]
    return None


def _as_float(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def usage_from_call(call: CallInfo) -> UsageRecord:
    """Derive metered usage from a call-ended payload.

    Duration drives recognition seconds and platform minutes; synthesized
    characters and model tokens come from ``call.costs`` ("tts", "llm").
    """
    duration = _as_float(call.duration)
    return UsageRecord(
        synthesis_chars=_as_float(call.costs.get("tts")),
        recognition_seconds=duration,
        model_tokens=_as_float(call.costs.get("llm")),
        platform_minutes=duration / 60,
    )


class WebhookGateway:
    """Entry point for every inbound platform event."""

    def __init__(
        self,
        registry: FunctionRegistry,
        cache: CacheManager,
        resolver: CustomerResolver,
        costs: CostAccountingService,
        datastore: ConversationDatastore,
        telemetry: Telemetry,
        *,
        secret: str | None = None,
        signature_header: str = "X-Call-Signature",
        emergency_transfer_number: str = "+35777111104",
        general_transfer_number: str = "+35777111104",
    ):
        self._registry = registry
        self._cache = cache
        self._resolver = resolver
        self._costs = costs
        self._datastore = datastore
        self._telemetry = telemetry
        self._secret = secret
        self.signature_header = signature_header
        self._emergency_number = emergency_transfer_number
        self._general_number = general_transfer_number

        self._routes: dict[str, Callable[[CallEvent], Awaitable[RouteOutcome]]] = {
            EventKind.FUNCTION_CALL: self._on_function_call,
            EventKind.CALL_STARTED: self._on_call_started,
            EventKind.CALL_ENDED: self._on_call_ended,
            EventKind.CONVERSATION_UPDATE: self._on_conversation_update,
            EventKind.TRANSFER_REQUEST: self._on_transfer_request,
            EventKind.STATUS_UPDATE: self._on_status_update,
            EventKind.TRANSCRIPT: self._on_transcript,
        }

    def verify(self, raw_body: bytes, signature: str | None) -> bool:
        return verify_signature(raw_body, signature, self._secret)

    async def handle(self, raw_body: bytes, signature: str | None) -> GatewayResponse:
        """Authenticate, parse and route one webhook delivery."""
        start = time.perf_counter()
        event_type = "unknown"
        call_id = None

        def elapsed_ms() -> float:
            return round((time.perf_counter() - start) * 1000, 1)

        try:
            if not self.verify(raw_body, signature):
                raise AuthenticationError("invalid or missing webhook signature")

            event = self.parse(raw_body)
            event_type = event.type
            call_id = event.call.id

            route = self._routes.get(event.type)
            if route is None:
                logger.info("webhook_unhandled_type", type=event.type, call_id=call_id)
                outcome = RouteOutcome({"received": True}, outcome="ignored")
            else:
                outcome = await route(event)

        except AuthenticationError:
            await self._telemetry.record("webhook_unauthorized", {"processing_ms": elapsed_ms()})
            return GatewayResponse(401, {"error": "Unauthorized"})

        except PayloadValidationError as e:
            logger.warning("webhook_invalid_payload", type=event_type, error=str(e))
            await self._telemetry.record(
                "webhook_invalid_payload",
                {"type": event_type, "call_id": call_id, "error": str(e), "processing_ms": elapsed_ms()},
            )
            return GatewayResponse(
                200,
                {
                    "received": False,
                    "error": {"type": "validation_error", "message": str(e), "details": e.details},
                },
            )

        except Exception as e:
            logger.error(
                "webhook_error",
                type=event_type,
                call_id=call_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            await self._telemetry.record(
                "webhook_error",
                {"type": event_type, "call_id": call_id, "error": str(e), "processing_ms": elapsed_ms()},
            )
            return GatewayResponse(500, dict(INTERNAL_ERROR_BODY))

        name = _event_name(event_type) if event_type in self._routes else "webhook_unhandled"
        await self._telemetry.record(
            name,
            {
                "type": event_type,
                "call_id": call_id,
                "outcome": outcome.outcome,
                "processing_ms": elapsed_ms(),
                **outcome.properties,
            },
            outcome.conversation_id,
        )
        logger.info("webhook_handled", type=event_type, call_id=call_id, outcome=outcome.outcome)
        return GatewayResponse(200, outcome.body)

    @staticmethod
    def parse(raw_body: bytes) -> CallEvent:
        """Decode and validate the event envelope.

        Accepts both a bare envelope and one wrapped in ``{"message": {...}}``.
        """
        try:
            payload = json.loads(raw_body or b"")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise PayloadValidationError(f"body is not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise PayloadValidationError("body must be a JSON object")
        if "type" not in payload and isinstance(payload.get("message"), dict):
            payload = payload["message"]

        try:
            return CallEvent.model_validate(payload)
        except ValidationError as e:
            details = [
                {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                for err in e.errors()
            ]
            raise PayloadValidationError("event envelope is invalid", details) from e

    @staticmethod
    def _require_call_id(event: CallEvent) -> str:
        if not event.call.id:
            raise PayloadValidationError(f"call.id is required for {event.type} events")
        return event.call.id

    async def _ensure_conversation(self, call: CallInfo, metadata: dict) -> str | None:
        if not call.id:
            return None
        try:
            conversation = await self._datastore.create_conversation(call.id, call.caller_number, metadata)
        except DependencyError as e:
            logger.warning("conversation_create_failed", call_id=call.id, error=str(e))
            return None
        return conversation.id

    # Routes

    async def _on_function_call(self, event: CallEvent) -> RouteOutcome:
        function_call = event.function_call
        if function_call is None or not function_call.name:
            result = {
                **fallback_result(UNKNOWN_FUNCTION_MESSAGE),
                "validation_error": "functionCall.name is required",
            }
            return RouteOutcome({"result": result}, outcome="invalid")

        name = function_call.name
        call = event.call
        degraded = False
        conversation_id = await self._ensure_conversation(
            call,
            {"function_call": {"name": name, "parameters": function_call.parameters}},
        )
        if call.id and conversation_id is None:
            degraded = True

        profile = await self._resolver.identify(call.caller_number, conversation_id)
        context = CallContext(
            call_id=call.id,
            conversation_id=conversation_id,
            customer_number=call.caller_number,
            customer_profile=profile,
            customer_context=self._resolver.get_context(profile),
            transcript=_text_of(event.transcript) or _text_of(event.message),
        )

        # Copy so that shortening the message never mutates a cached result
        result = dict(await self._registry.execute(name, function_call.parameters, context))
        if isinstance(result.get("message"), str):
            result["message"] = await self._costs.optimize_response(
                result["message"], detect_language_from_result(result)
            )

        if call.id:
            try:
                await self._datastore.update_conversation(
                    call.id,
                    {
                        "functions_called": [name],
                        "metadata": {
                            "last_function": name,
                            "last_function_error": bool(result.get("error")),
                            "last_function_time": datetime.now(UTC).isoformat(),
                        },
                    },
                )
            except DependencyError as e:
                logger.warning("conversation_update_failed", call_id=call.id, error=str(e))
                degraded = True

        if result.get("fallback"):
            outcome = "fallback"
        elif degraded:
            outcome = "degraded"
        else:
            outcome = "ok"
        return RouteOutcome(
            {"result": result},
            outcome=outcome,
            properties={"function": name, "customer_identified": profile is not None},
            conversation_id=conversation_id,
        )

    async def _on_call_started(self, event: CallEvent) -> RouteOutcome:
        call = event.call
        self._require_call_id(event)

        profile = await self._resolver.identify(call.caller_number)
        greeting = None
        if profile is not None:
            greeting = self._resolver.generate_greeting(profile, profile.preferred_language)

        conversation_id = await self._ensure_conversation(
            call,
            {
                "call_started": datetime.now(UTC).isoformat(),
                "customer_name": profile.name if profile else (call.customer.name if call.customer else None),
                "assistant_id": call.assistant_id,
                "customer_identified": profile is not None,
                "is_vip": profile.is_vip if profile else False,
            },
        )

        body: dict = {"received": True}
        if greeting:
            body["personalizedGreeting"] = greeting
            body["customerContext"] = {
                "identified": True,
                "name": profile.name,
                "preferredLanguage": profile.preferred_language,
            }

        return RouteOutcome(
            body,
            outcome="ok" if conversation_id else "degraded",
            properties={
                "customer_identified": profile is not None,
                "is_returning_customer": bool(profile and profile.total_orders > 0),
                "is_vip": bool(profile and profile.is_vip),
            },
            conversation_id=conversation_id,
        )

    async def _on_call_ended(self, event: CallEvent) -> RouteOutcome:
        call = event.call
        call_id = self._require_call_id(event)
        usage = usage_from_call(call)
        status = (
            ConversationStatus.RESOLVED
            if call.ended_reason == "customer-ended-call"
            else ConversationStatus.INCOMPLETE
        )

        cost = None
        outcome = "ok"
        try:
            breakdown = await self._costs.track_call_cost(call_id, usage)
            cost = breakdown.total
            await self._datastore.update_conversation(
                call_id,
                {
                    "ended_at": datetime.now(UTC),
                    "duration_seconds": call.duration,
                    "status": status.value,
                    "cost": cost,
                },
            )
        except DependencyError as e:
            logger.warning("call_end_persist_failed", call_id=call_id, error=str(e))
            outcome = "degraded"

        return RouteOutcome(
            {"received": True},
            outcome=outcome,
            properties={
                "duration": call.duration,
                "end_reason": call.ended_reason,
                "status": status.value,
                "cost": cost,
            },
        )

    async def _on_conversation_update(self, event: CallEvent) -> RouteOutcome:
        call_id = self._require_call_id(event)
        transcript = event.transcript if event.transcript is not None else event.message
        if transcript is None:
            return RouteOutcome({"received": True}, outcome="ignored")

        language = detect_language(_text_of(transcript))
        try:
            await self._datastore.update_conversation(
                call_id, {"transcript": transcript, "language_detected": language}
            )
        except DependencyError as e:
            logger.warning("conversation_update_failed", call_id=call_id, error=str(e))
            return RouteOutcome({"received": True}, outcome="degraded")

        return RouteOutcome({"received": True}, properties={"language": language})

    async def _on_transfer_request(self, event: CallEvent) -> RouteOutcome:
        parameters = event.function_call.parameters if event.function_call else {}
        urgency = str(parameters.get("urgency") or "medium").lower()

        if urgency in EMERGENCY_URGENCIES:
            destination = {
                "type": "number",
                "number": self._emergency_number,
                "message": "Connecting you to our emergency support team.",
            }
        else:
            destination = {
                "type": "number",
                "number": self._general_number,
                "message": "Transferring you to our support team. Please hold.",
            }

        return RouteOutcome(
            {"destination": destination},
            properties={"urgency": urgency, "destination": destination["number"]},
        )

    async def _on_status_update(self, event: CallEvent) -> RouteOutcome:
        return RouteOutcome({"received": True}, properties={"status": event.call.status})

    async def _on_transcript(self, event: CallEvent) -> RouteOutcome:
        payload = event.message if event.message is not None else event.transcript
        role = payload.get("role", "unknown") if isinstance(payload, dict) else "unknown"
        return RouteOutcome(
            {"received": True},
            properties={"role": role, "transcript": _text_of(payload)},
        )

    # Introspection

    async def warmup(self) -> None:
        await self._cache.warmup()

    def health(self) -> dict:
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "functionRegistryStats": self._registry.get_stats(),
            "cacheStats": self._cache.get_stats(),
        }
