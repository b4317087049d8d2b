"""Pydantic models for usage metering and cost reports."""

from pydantic import BaseModel


class UsageRecord(BaseModel):
    """Metered usage of a single call."""
    synthesis_chars: float = 0
    recognition_seconds: float = 0
    model_tokens: float = 0
    platform_minutes: float = 0


class CostBreakdown(BaseModel):
    synthesis_cost: float
    recognition_cost: float
    model_cost: float
    platform_cost: float
    total: float
    currency: str = "EUR"

    def components(self) -> dict[str, float]:
        return {
            "synthesis": self.synthesis_cost,
            "recognition": self.recognition_cost,
            "model": self.model_cost,
            "platform": self.platform_cost,
        }


class DailyCostReport(BaseModel):
    date: str
    total_calls: int
    total_cost: float
    average_cost: float
    high_cost_calls: int
    monthly_projection: float
    budget_used_percent: float
    currency: str = "EUR"


class OptimizationSuggestion(BaseModel):
    type: str  # "high_cost_calls", "low_cache_hit_rate"
    priority: str  # "high", "medium", "low"
    description: str
    recommendation: str
