"""Per-call cost accounting and response shortening."""

import re
from datetime import UTC, date, datetime, time, timedelta

from callhub.costs.models import (
    CostBreakdown,
    DailyCostReport,
    OptimizationSuggestion,
    UsageRecord,
)
from callhub.datastore.base import ConversationDatastore
from callhub.telemetry import Telemetry
from callhub.utils.logging import get_logger

logger = get_logger(__name__)

HIGH_COST_WINDOW = timedelta(days=7)
CACHE_HIT_WINDOW = timedelta(hours=24)
MIN_CACHE_HIT_RATE = 60.0  # percent
HIGH_COST_SAMPLE = 10

# Long phrase -> short equivalent, matched case-insensitively
RESPONSE_SHORTENINGS: dict[str, dict[str, str]] = {
    "en": {
        "Thank you for calling Armenius Store": "Thanks for calling Armenius",
        "Let me check that for you right away": "Let me check that",
        "Is there anything else I can help you with today?": "Anything else?",
        "I would be happy to assist you with": "I can help with",
        "Please hold on for just a moment": "One moment",
        "I apologize for the inconvenience": "Sorry about that",
        "Your satisfaction is important to us": "We value your business",
    },
    "el": {
        "Ευχαριστώ που καλέσατε το Armenius Store": "Ευχαριστώ που καλέσατε",
        "Περιμένετε λίγο να το ελέγξω": "Μια στιγμή",
        "Μπορώ να σας βοηθήσω με κάτι άλλο;": "Κάτι άλλο;",
    },
}

_WHITESPACE_RE = re.compile(r"\s+")
_REPEATED_PUNCT_RE = re.compile(r"([.!?])(\s*\1)+")


class CostAccountingService:
    """Prices metered usage and reports on spend."""

    def __init__(
        self,
        datastore: ConversationDatastore,
        telemetry: Telemetry,
        *,
        cost_per_synthesis_char: float = 0.000018,
        cost_per_recognition_second: float = 0.0004,
        cost_per_1k_model_tokens: float = 0.002,
        cost_per_platform_minute: float = 0.05,
        currency: str = "EUR",
        alert_threshold: float = 2.0,
        monthly_budget: float = 330.0,
        optimization_enabled: bool = True,
    ):
        self._datastore = datastore
        self._telemetry = telemetry
        self._rate_synthesis = cost_per_synthesis_char
        self._rate_recognition = cost_per_recognition_second
        self._rate_model = cost_per_1k_model_tokens
        self._rate_platform = cost_per_platform_minute
        self._currency = currency
        self.alert_threshold = alert_threshold
        self._monthly_budget = monthly_budget
        self._optimization_enabled = optimization_enabled

        self._shortenings = {
            language: [
                (re.compile(re.escape(long), re.IGNORECASE), short)
                for long, short in table.items()
            ]
            for language, table in RESPONSE_SHORTENINGS.items()
        }

    def calculate_cost(self, usage: UsageRecord) -> CostBreakdown:
        synthesis = usage.synthesis_chars * self._rate_synthesis
        recognition = usage.recognition_seconds * self._rate_recognition
        model = usage.model_tokens / 1000 * self._rate_model
        platform = usage.platform_minutes * self._rate_platform

        return CostBreakdown(
            synthesis_cost=round(synthesis, 6),
            recognition_cost=round(recognition, 6),
            model_cost=round(model, 6),
            platform_cost=round(platform, 6),
            total=round(synthesis + recognition + model + platform, 4),
            currency=self._currency,
        )

    async def track_call_cost(self, call_id: str, usage: UsageRecord) -> CostBreakdown:
        """Price a finished call, store it and alert above the threshold.

        Raises whatever the datastore raises; the caller decides how to degrade.
        """
        breakdown = self.calculate_cost(usage)
        await self._datastore.update_call_cost(call_id, breakdown.total, breakdown.components())

        if breakdown.total > self.alert_threshold:
            logger.warning(
                "cost_alert",
                call_id=call_id,
                total=breakdown.total,
                threshold=self.alert_threshold,
            )
            await self._telemetry.record(
                "cost_alert",
                {
                    "call_id": call_id,
                    "cost": breakdown.total,
                    "threshold": self.alert_threshold,
                    "breakdown": breakdown.components(),
                },
            )

        await self._telemetry.record(
            "call_cost_calculated",
            {
                "call_id": call_id,
                "total": breakdown.total,
                "currency": breakdown.currency,
                "usage": usage.model_dump(),
            },
        )
        return breakdown

    async def optimize_response(self, text: str, language: str = "en") -> str:
        """Shorten common phrases to cut speech-synthesis characters."""
        if not self._optimization_enabled or not text:
            return text

        optimized = text
        for pattern, short in self._shortenings.get(language, []):
            optimized = pattern.sub(short, optimized)

        optimized = _WHITESPACE_RE.sub(" ", optimized)
        optimized = _REPEATED_PUNCT_RE.sub(r"\1", optimized).strip()

        saved = len(text) - len(optimized)
        if saved > 0:
            await self._telemetry.record(
                "response_optimization",
                {
                    "original_length": len(text),
                    "optimized_length": len(optimized),
                    "chars_saved": saved,
                    "cost_saved": round(saved * self._rate_synthesis, 6),
                    "language": language,
                },
            )
        return optimized

    async def daily_cost_report(self, day: date | None = None) -> DailyCostReport:
        day = day or datetime.now(UTC).date()
        start = datetime.combine(day, time.min, tzinfo=UTC)
        end = datetime.combine(day, time.max, tzinfo=UTC)

        conversations = await self._datastore.list_conversations(start, end)
        costs = [c.cost for c in conversations if c.cost is not None]
        total = sum(costs)
        average = total / len(costs) if costs else 0.0

        return DailyCostReport(
            date=day.isoformat(),
            total_calls=len(costs),
            total_cost=round(total, 2),
            average_cost=round(average, 2),
            high_cost_calls=sum(1 for c in costs if c > self.alert_threshold),
            monthly_projection=round(total * 30, 2),
            budget_used_percent=round(total / self._monthly_budget * 100, 1)
            if self._monthly_budget
            else 0.0,
            currency=self._currency,
        )

    async def optimization_suggestions(self, now: datetime | None = None) -> list[OptimizationSuggestion]:
        now = now or datetime.now(UTC)
        suggestions: list[OptimizationSuggestion] = []

        high_cost = await self._datastore.list_conversations(
            now - HIGH_COST_WINDOW, now, min_cost=self.alert_threshold
        )
        if high_cost:
            high_cost.sort(key=lambda c: c.cost or 0, reverse=True)
            sample = high_cost[:HIGH_COST_SAMPLE]
            average = sum(c.cost or 0 for c in sample) / len(sample)
            suggestions.append(
                OptimizationSuggestion(
                    type="high_cost_calls",
                    priority="high",
                    description=(
                        f"{len(high_cost)} calls exceeded the cost threshold in the last 7 days "
                        f"(avg {average:.2f} {self._currency})"
                    ),
                    recommendation="Review conversation flows for optimization opportunities",
                )
            )

        events = await self._datastore.list_events(["cache_hit", "cache_miss"], now - CACHE_HIT_WINDOW)
        if events:
            hits = sum(1 for e in events if e.event_type == "cache_hit")
            hit_rate = hits / len(events) * 100
            if hit_rate < MIN_CACHE_HIT_RATE:
                suggestions.append(
                    OptimizationSuggestion(
                        type="low_cache_hit_rate",
                        priority="medium",
                        description=f"Cache hit rate is {hit_rate:.1f}% (last 24h)",
                        recommendation="Consider increasing cache TTL for frequently requested data",
                    )
                )

        return suggestions
