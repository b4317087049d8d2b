"""Ordered fallback chains (primary store -> live search -> static text)."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from callhub.utils.logging import get_logger

logger = get_logger(__name__)

Resolver = Callable[..., Awaitable[dict | None]]


@dataclass(frozen=True)
class FallbackTier:
    """A named resolver returning a result, or None to defer to the next tier."""
    name: str
    resolve: Resolver


class FallbackChain:
    """Tries tiers in order and stops at the first one that returns a result.

    A tier that raises is logged and skipped like a tier that returned None.
    The last tier should be a static answer that always succeeds.
    """

    def __init__(self, tiers: list[FallbackTier]):
        if not tiers:
            raise ValueError("A fallback chain needs at least one tier")
        self._tiers = tiers

    @property
    def tier_names(self) -> list[str]:
        return [t.name for t in self._tiers]

    async def run(self, *args: Any, **kwargs: Any) -> dict | None:
        for tier in self._tiers:
            try:
                result = await tier.resolve(*args, **kwargs)
            except Exception as e:
                logger.warning("fallback_tier_failed", tier=tier.name, error=str(e))
                continue
            if result is not None:
                logger.debug("fallback_tier_resolved", tier=tier.name)
                return {**result, "source": tier.name}
        return None
