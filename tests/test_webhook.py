"""Tests for the webhook gateway and HTTP surface."""

import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from callhub.bootstrap import build_services
from callhub.config import Settings
from callhub.main import create_app
from callhub.webhook.signature import compute_signature, verify_signature

SECRET = "test-secret"


def _body(payload) -> bytes:
    return json.dumps(payload).encode("utf-8")


def _signed(payload):
    raw = _body(payload)
    return raw, compute_signature(raw, SECRET)


def _webhook_records(telemetry) -> dict:
    return {k: v for k, v in telemetry.get_stats()["events"].items() if k.startswith("webhook_")}


@pytest.fixture
def settings():
    return Settings(webhook_secret=SECRET, emergency_transfer_number="+35799999999")


@pytest.fixture
def services(settings, datastore, remote):
    return build_services(settings, datastore=datastore, remote=remote)


@pytest.fixture
def gateway(services):
    return services.gateway


class TestSignature:
    def test_valid(self):
        raw = b'{"type": "status-update"}'
        assert verify_signature(raw, compute_signature(raw, SECRET), SECRET)

    def test_uppercase_hex_accepted(self):
        raw = b"{}"
        assert verify_signature(raw, compute_signature(raw, SECRET).upper(), SECRET)

    def test_missing(self):
        assert not verify_signature(b"{}", None, SECRET)

    def test_disabled_without_secret(self):
        assert verify_signature(b"{}", None, None)

    def test_non_ascii_header_rejected(self):
        assert not verify_signature(b"{}", "\u00e9" * 64, SECRET)


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_altered_body_rejected(self, gateway, services):
        raw, signature = _signed({"type": "function-call", "functionCall": {"name": "getStoreInfo"}})
        services.registry.execute = AsyncMock()

        response = await gateway.handle(raw.replace(b"getStoreInfo", b"bookAppointment"), signature)

        assert response.status_code == 401
        assert response.body == {"error": "Unauthorized"}
        services.registry.execute.assert_not_awaited()
        assert _webhook_records(services.telemetry) == {"webhook_unauthorized": 1}

    @pytest.mark.asyncio
    async def test_missing_signature_rejected(self, gateway):
        response = await gateway.handle(_body({"type": "status-update"}), None)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_no_secret_skips_verification(self, datastore):
        services = build_services(Settings(webhook_secret=None), datastore=datastore)
        response = await services.gateway.handle(_body({"type": "status-update"}), None)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_non_ascii_signature_rejected(self, gateway, services):
        raw = _body({"type": "status-update", "call": {"id": "call-1"}})

        response = await gateway.handle(raw, "\u00e9" * 64)

        assert response.status_code == 401
        assert response.body == {"error": "Unauthorized"}
        assert _webhook_records(services.telemetry) == {"webhook_unauthorized": 1}


class TestPayloadValidation:
    @pytest.mark.asyncio
    async def test_invalid_json(self, gateway, services):
        raw = b"{not json"
        response = await gateway.handle(raw, compute_signature(raw, SECRET))

        assert response.status_code == 200
        assert response.body["received"] is False
        assert response.body["error"]["type"] == "validation_error"
        assert _webhook_records(services.telemetry) == {"webhook_invalid_payload": 1}

    @pytest.mark.asyncio
    async def test_missing_type(self, gateway):
        raw, signature = _signed({"call": {"id": "call-1"}})
        response = await gateway.handle(raw, signature)
        assert response.status_code == 200
        assert response.body["error"]["details"][0]["loc"] == "type"

    @pytest.mark.asyncio
    async def test_lifecycle_event_requires_call_id(self, gateway):
        raw, signature = _signed({"type": "call-ended", "call": {"duration": 30}})
        response = await gateway.handle(raw, signature)
        assert response.status_code == 200
        assert response.body["received"] is False
        assert "call.id" in response.body["error"]["message"]

    @pytest.mark.asyncio
    async def test_unknown_type_acknowledged(self, gateway, services):
        services.registry.execute = AsyncMock()
        raw, signature = _signed({"type": "speech-update", "call": {"id": "call-1"}})

        response = await gateway.handle(raw, signature)

        assert response.status_code == 200
        assert response.body == {"received": True}
        services.registry.execute.assert_not_awaited()
        assert _webhook_records(services.telemetry) == {"webhook_unhandled": 1}

    @pytest.mark.asyncio
    async def test_wrapped_envelope(self, gateway):
        raw, signature = _signed({
            "message": {
                "type": "transfer-destination-request",
                "call": {"id": "call-1"},
                "functionCall": {"parameters": {"urgency": "low"}},
            }
        })
        response = await gateway.handle(raw, signature)
        assert response.body["destination"]["type"] == "number"


class TestFunctionCall:
    @pytest.mark.asyncio
    async def test_result_returned_and_conversation_updated(self, gateway, services, datastore):
        raw, signature = _signed({
            "type": "function-call",
            "call": {"id": "call-1", "customer": {"number": "99123456"}},
            "functionCall": {"name": "checkInventory", "parameters": {"product_name": "RTX 4090"}},
        })

        response = await gateway.handle(raw, signature)

        assert response.status_code == 200
        result = response.body["result"]
        assert result["available"] is True
        assert result["source"] == "local_catalogue"

        conversation = await datastore.get_conversation("call-1")
        assert conversation.phone == "99123456"
        assert conversation.functions_called == ["checkInventory"]
        assert conversation.metadata["last_function"] == "checkInventory"
        assert _webhook_records(services.telemetry) == {"webhook_function_call": 1}

    @pytest.mark.asyncio
    async def test_repeat_call_served_from_cache(self, gateway, services):
        payload = {
            "type": "function-call",
            "call": {"id": "call-1"},
            "functionCall": {"name": "checkInventory", "parameters": {"product_name": "RTX 4090"}},
        }
        first = await gateway.handle(*_signed(payload))
        payload["call"]["id"] = "call-2"
        second = await gateway.handle(*_signed(payload))

        assert first.body == second.body
        stats = services.registry.get_stats()["functions"]["checkInventory"]
        assert stats["calls"] == 2
        assert stats["cache_hits"] == 1

    @pytest.mark.asyncio
    async def test_handler_failure_returns_fallback(self, gateway, services, datastore):
        datastore.get_order = AsyncMock(side_effect=ConnectionError("db down"))
        raw, signature = _signed({
            "type": "function-call",
            "call": {"id": "call-1"},
            "functionCall": {"name": "checkOrderStatus", "parameters": {"order_number": "ORD-00001"}},
        })

        response = await gateway.handle(raw, signature)

        assert response.status_code == 200
        assert response.body["result"]["fallback"] is True
        assert "77-111-104" in response.body["result"]["message"]

    @pytest.mark.asyncio
    async def test_trusted_caller_order_lookup(self, gateway):
        raw, signature = _signed({
            "type": "function-call",
            "call": {"id": "call-1", "customerNumber": "+357 99 123456"},
            "functionCall": {"name": "checkOrderStatus", "parameters": {}},
        })
        response = await gateway.handle(raw, signature)
        assert response.body["result"]["found"] is True
        assert response.body["result"]["status"] == "shipped"

    @pytest.mark.asyncio
    async def test_latest_order_not_shared_between_callers(self, gateway):
        trusted, signature = _signed({
            "type": "function-call",
            "call": {"id": "call-1", "customerNumber": "99123456"},
            "functionCall": {"name": "checkOrderStatus", "parameters": {}},
        })
        await gateway.handle(trusted, signature)

        stranger, signature = _signed({
            "type": "function-call",
            "call": {"id": "call-2", "customerNumber": "+35799000000"},
            "functionCall": {"name": "checkOrderStatus", "parameters": {}},
        })
        response = await gateway.handle(stranger, signature)

        assert response.body["result"]["requires_input"] is True
        assert "order_number" not in response.body["result"]

    @pytest.mark.asyncio
    async def test_missing_name(self, gateway):
        raw, signature = _signed({"type": "function-call", "call": {"id": "call-1"}, "functionCall": {}})
        response = await gateway.handle(raw, signature)
        assert response.status_code == 200
        assert response.body["result"]["error"] is True

    @pytest.mark.asyncio
    async def test_unknown_function(self, gateway):
        raw, signature = _signed({
            "type": "function-call",
            "call": {"id": "call-1"},
            "functionCall": {"name": "launchRocket", "parameters": {}},
        })
        response = await gateway.handle(raw, signature)
        assert response.status_code == 200
        assert response.body["result"]["fallback"] is True

    @pytest.mark.asyncio
    async def test_cached_result_not_mutated_by_optimization(self, gateway, services):
        await services.cache.warmup()
        payload = {
            "type": "function-call",
            "call": {"id": "call-1"},
            "functionCall": {"name": "getStoreInfo", "parameters": {"info_type": "hours"}},
        }
        cache_key = services.cache.function_key("getStoreInfo", {"info_type": "hours"})

        await gateway.handle(*_signed(payload))
        cached = await services.cache.get(cache_key)
        await gateway.handle(*_signed(payload))

        assert await services.cache.get(cache_key) == cached


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_call_started_greets_known_caller(self, gateway, datastore):
        raw, signature = _signed({
            "type": "call-started",
            "call": {"id": "call-1", "customer": {"number": "99123456"}},
        })

        response = await gateway.handle(raw, signature)

        assert response.body["personalizedGreeting"].startswith("Welcome back Maria!")
        assert response.body["customerContext"] == {
            "identified": True,
            "name": "Maria Georgiou",
            "preferredLanguage": "en",
        }
        conversation = await datastore.get_conversation("call-1")
        assert conversation.metadata["customer_identified"] is True

    @pytest.mark.asyncio
    async def test_call_started_unknown_caller(self, gateway):
        raw, signature = _signed({"type": "call-started", "call": {"id": "call-1", "customerNumber": "+35799000000"}})
        response = await gateway.handle(raw, signature)
        assert response.body == {"received": True}

    @pytest.mark.asyncio
    async def test_call_ended_records_cost(self, gateway, datastore):
        await datastore.create_conversation("call-1", "+35799123456")
        raw, signature = _signed({
            "type": "call-ended",
            "call": {
                "id": "call-1",
                "duration": 60,
                "endedReason": "customer-ended-call",
                "costs": {"tts": 1000, "llm": 2000},
            },
        })

        response = await gateway.handle(raw, signature)

        assert response.body == {"received": True}
        conversation = await datastore.get_conversation("call-1")
        assert conversation.cost == 0.096
        assert conversation.status.value == "resolved"
        assert conversation.duration_seconds == 60
        assert conversation.ended_at is not None

    @pytest.mark.asyncio
    async def test_call_ended_other_reason_incomplete(self, gateway, datastore):
        await datastore.create_conversation("call-1", None)
        raw, signature = _signed({
            "type": "call-ended",
            "call": {"id": "call-1", "duration": 30, "endedReason": "assistant-error"},
        })
        await gateway.handle(raw, signature)
        conversation = await datastore.get_conversation("call-1")
        assert conversation.status.value == "incomplete"

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_500(self, gateway, services):
        services.costs.track_call_cost = AsyncMock(side_effect=RuntimeError("boom"))
        raw, signature = _signed({"type": "call-ended", "call": {"id": "call-1", "duration": 10}})

        response = await gateway.handle(raw, signature)

        assert response.status_code == 500
        assert response.body == {
            "error": "Internal server error",
            "message": "Something went wrong processing your request",
        }
        assert _webhook_records(services.telemetry) == {"webhook_error": 1}

    @pytest.mark.asyncio
    async def test_conversation_update_detects_greek(self, gateway, datastore):
        await datastore.create_conversation("call-1", None)
        raw, signature = _signed({
            "type": "conversation-update",
            "call": {"id": "call-1"},
            "transcript": "Γεια σας, θέλω να ρωτήσω για μια παραγγελία",
        })
        await gateway.handle(raw, signature)
        conversation = await datastore.get_conversation("call-1")
        assert conversation.language_detected == "el"
        assert conversation.transcript.startswith("Γεια σας")

    @pytest.mark.asyncio
    async def test_status_update_acknowledged(self, gateway, services, datastore):
        raw, signature = _signed({"type": "status-update", "call": {"id": "call-1", "status": "in-progress"}})

        response = await gateway.handle(raw, signature)

        assert response.status_code == 200
        assert response.body == {"received": True}
        assert _webhook_records(services.telemetry) == {"webhook_status_update": 1}
        [event] = [e for e in datastore.events if e.event_type == "webhook_status_update"]
        assert event.properties["status"] == "in-progress"
        assert event.properties["call_id"] == "call-1"

    @pytest.mark.asyncio
    async def test_transcript_acknowledged(self, gateway, services, datastore):
        raw, signature = _signed({
            "type": "transcript",
            "call": {"id": "call-1"},
            "message": {"role": "user", "transcript": "Do you have the RTX 4090 in stock?"},
        })

        response = await gateway.handle(raw, signature)

        assert response.status_code == 200
        assert response.body == {"received": True}
        assert _webhook_records(services.telemetry) == {"webhook_transcript": 1}
        [event] = [e for e in datastore.events if e.event_type == "webhook_transcript"]
        assert event.properties["role"] == "user"
        assert event.properties["transcript"] == "Do you have the RTX 4090 in stock?"

    @pytest.mark.asyncio
    async def test_transcript_without_role(self, gateway, datastore):
        raw, signature = _signed({"type": "transcript", "call": {"id": "call-1"}, "transcript": "hello"})
        await gateway.handle(raw, signature)
        [event] = [e for e in datastore.events if e.event_type == "webhook_transcript"]
        assert event.properties["role"] == "unknown"
        assert event.properties["transcript"] == "hello"


class TestTransfer:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("urgency", ["critical", "emergency", "CRITICAL"])
    async def test_emergency(self, gateway, urgency):
        raw, signature = _signed({
            "type": "transfer-destination-request",
            "call": {"id": "call-1"},
            "functionCall": {"parameters": {"urgency": urgency}},
        })
        response = await gateway.handle(raw, signature)
        assert response.body["destination"]["number"] == "+35799999999"
        assert response.body["destination"]["message"] == "Connecting you to our emergency support team."

    @pytest.mark.asyncio
    async def test_general(self, gateway):
        raw, signature = _signed({"type": "transfer-destination-request", "call": {"id": "call-1"}})
        response = await gateway.handle(raw, signature)
        assert response.body["destination"] == {
            "type": "number",
            "number": "+35777111104",
            "message": "Transferring you to our support team. Please hold.",
        }


class TestHttp:
    @pytest.fixture
    def client(self, services):
        with TestClient(create_app(services)) as client:
            yield client

    def test_webhook_signed(self, client):
        raw, signature = _signed({"type": "status-update", "call": {"id": "call-1", "status": "ringing"}})
        response = client.post(
            "/webhook", content=raw, headers={"X-Call-Signature": signature, "Content-Type": "application/json"}
        )
        assert response.status_code == 200
        assert response.json() == {"received": True}

    def test_webhook_unsigned(self, client):
        response = client.post("/webhook", content=_body({"type": "status-update"}))
        assert response.status_code == 401

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["functionRegistryStats"]["total_functions"] == 10
        # Warmed at startup
        assert body["cacheStats"]["local"]["size"] == 6
        assert body["cacheStats"]["remote"]["configured"] is True

    def test_daily_report(self, client):
        response = client.get("/reports/costs/daily", params={"date": "2020-01-01"})
        assert response.status_code == 200
        assert response.json()["total_calls"] == 0

    def test_daily_report_bad_date(self, client):
        assert client.get("/reports/costs/daily", params={"date": "yesterday"}).status_code == 400

    def test_suggestions(self, client):
        response = client.get("/reports/costs/suggestions")
        assert response.status_code == 200
        assert response.json() == {"suggestions": []}
