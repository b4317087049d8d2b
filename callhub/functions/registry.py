"""Function registry with memoized, failure-safe execution.

Maps operation names to handlers. Every execution goes through the cache
(for cacheable handlers) and every handler exception is converted into the
handler's fallback result, so nothing raised by a handler reaches the caller.

There is no single-flight protection: two concurrent calls with the same
uncached key both run the handler.
"""

import time
from collections import defaultdict
from dataclasses import dataclass

from callhub.cache.manager import CacheManager
from callhub.conversation.models import CallContext
from callhub.errors import HandlerExecutionError
from callhub.functions.base import DEFAULT_TTL_SECONDS, FunctionHandler
from callhub.telemetry import Telemetry
from callhub.utils.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_FUNCTION_MESSAGE = (
    "I'm having trouble with that request. Please try again or call us directly at 77-111-104."
)


def default_fallback_message(name: str) -> str:
    return f"I'm having trouble with {name}. Please try again or contact us directly."


def fallback_result(message: str) -> dict:
    return {"error": True, "message": message, "fallback": True}


@dataclass(frozen=True)
class RegisteredFunction:
    """A handler with its defaults resolved. Immutable once registered."""
    name: str
    handler: FunctionHandler
    ttl_seconds: int
    cacheable: bool
    fallback_message: str

    @property
    def memoized(self) -> bool:
        return self.cacheable and self.ttl_seconds > 0


class FunctionRegistry:
    """Registry of named operations, built once at startup."""

    def __init__(self, cache: CacheManager, telemetry: Telemetry):
        self._cache = cache
        self._telemetry = telemetry
        self._functions: dict[str, RegisteredFunction] = {}
        self._stats: dict[str, dict[str, float]] = defaultdict(
            lambda: {"calls": 0, "cache_hits": 0, "failures": 0, "total_ms": 0.0}
        )

    def register(self, name: str, handler: FunctionHandler) -> RegisteredFunction:
        """Register a handler under a name, filling in defaults.

        Raises:
            TypeError: the handler has no callable ``execute``.
            ValueError: the name is empty or already registered.
        """
        if not callable(getattr(handler, "execute", None)):
            raise TypeError(f"Function {name} must have an execute method")
        if not name:
            raise ValueError("Function name must not be empty")
        if name in self._functions:
            raise ValueError(f"Function {name} is already registered")

        ttl = getattr(handler, "ttl_seconds", None)
        fallback = getattr(handler, "fallback_message", None)
        registered = RegisteredFunction(
            name=name,
            handler=handler,
            ttl_seconds=DEFAULT_TTL_SECONDS if ttl is None else int(ttl),
            cacheable=bool(getattr(handler, "cacheable", True)),
            fallback_message=fallback or default_fallback_message(name),
        )
        self._functions[name] = registered
        logger.info(
            "function_registered",
            function=name,
            ttl_seconds=registered.ttl_seconds,
            cacheable=registered.cacheable,
        )
        return registered

    def get(self, name: str) -> RegisteredFunction | None:
        return self._functions.get(name)

    def list(self) -> list[str]:
        return list(self._functions)

    async def execute(
        self, name: str, params: dict | None, context: CallContext | None = None
    ) -> dict:
        """Run a registered operation and return its result or fallback."""
        context = context or CallContext()
        params = params or {}
        registered = self._functions.get(name)
        if registered is None:
            logger.warning("function_not_found", function=name)
            await self._telemetry.record(
                "function_not_found", {"function": name}, context.conversation_id
            )
            return fallback_result(UNKNOWN_FUNCTION_MESSAGE)

        stats = self._stats[name]
        stats["calls"] += 1
        start = time.perf_counter()
        cache_key = CacheManager.function_key(name, params)

        if registered.memoized:
            cached = await self._cache.get(cache_key)
            if cached is not None:
                stats["cache_hits"] += 1
                duration_ms = (time.perf_counter() - start) * 1000
                await self._telemetry.record(
                    "cache_hit",
                    {"function": name, "cache_key": cache_key, "duration_ms": round(duration_ms, 1)},
                    context.conversation_id,
                )
                return cached
            await self._telemetry.record(
                "cache_miss",
                {"function": name, "cache_key": cache_key},
                context.conversation_id,
            )

        try:
            result = await registered.handler.execute(params, context)
        except Exception as e:
            error = HandlerExecutionError(name, e)
            duration_ms = (time.perf_counter() - start) * 1000
            stats["failures"] += 1
            stats["total_ms"] += duration_ms
            logger.error(
                "function_failed",
                function=name,
                error=str(error),
                error_type=type(e).__name__,
                duration_ms=round(duration_ms, 1),
            )
            await self._telemetry.record(
                "function_error",
                {
                    "function": name,
                    "duration_ms": round(duration_ms, 1),
                    "error": str(e),
                    "success": False,
                },
                context.conversation_id,
            )
            return fallback_result(registered.fallback_message)

        # Errors and caller-specific answers are never shared through the cache
        if (
            registered.memoized
            and isinstance(result, dict)
            and not result.get("error")
            and not result.get("personalized")
        ):
            await self._cache.set(cache_key, result, registered.ttl_seconds)

        duration_ms = (time.perf_counter() - start) * 1000
        stats["total_ms"] += duration_ms
        logger.info("function_executed", function=name, duration_ms=round(duration_ms, 1))
        await self._telemetry.record(
            "function_call",
            {"function": name, "duration_ms": round(duration_ms, 1), "success": True},
            context.conversation_id,
        )
        return result

    def get_stats(self) -> dict:
        per_function = {}
        for name in self._functions:
            stats = self._stats.get(name)
            if stats is None:
                per_function[name] = {"calls": 0, "cache_hits": 0, "failures": 0, "avg_ms": 0.0}
                continue
            executed = stats["calls"] - stats["cache_hits"]
            per_function[name] = {
                "calls": int(stats["calls"]),
                "cache_hits": int(stats["cache_hits"]),
                "failures": int(stats["failures"]),
                "avg_ms": round(stats["total_ms"] / executed, 1) if executed else 0.0,
            }
        return {
            "total_functions": len(self._functions),
            "function_names": self.list(),
            "functions": per_function,
        }
