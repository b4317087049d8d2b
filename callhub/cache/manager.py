"""Two-tier read-through / write-through cache.

Tier 1 is a bounded in-process LRU, tier 2 an optional remote key-value
store. Remote failures are logged and the manager keeps working on the
local tier alone; callers never see an exception from here.
"""

import base64
import json
import re
from typing import Any

from callhub.cache.local import LocalCache
from callhub.cache.remote import RemoteStore
from callhub.cache.warmup import WARMUP_RESPONSES, WARMUP_TTL_SECONDS
from callhub.utils.logging import get_logger

logger = get_logger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def _serialize(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def canonicalize_params(params: dict | None) -> str:
    """Serialize parameters with keys sorted at every level."""
    return json.dumps(
        params or {},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


class CacheManager:
    """Local LRU in front of an optional remote store."""

    def __init__(self, local: LocalCache | None = None, remote: RemoteStore | None = None):
        self._local = local if local is not None else LocalCache()
        self._remote = remote
        self._local_hits = 0
        self._remote_hits = 0
        self._misses = 0
        self._remote_errors = 0

    @property
    def remote_enabled(self) -> bool:
        return self._remote is not None

    async def get(self, key: str) -> Any | None:
        """Look up a key in the local tier, then the remote tier."""
        value = self._local.get(key)
        if value is not None:
            self._local_hits += 1
            logger.debug("cache_hit", tier="local", key=key)
            return value

        if self._remote is not None:
            try:
                raw = await self._remote.get(key)
            except Exception as e:
                self._remote_errors += 1
                logger.warning("cache_remote_get_failed", key=key, error=str(e))
                raw = None

            if raw is not None:
                try:
                    value = json.loads(raw)
                except (json.JSONDecodeError, TypeError):
                    logger.warning("cache_remote_corrupted_value", key=key)
                    value = None
                if value is not None:
                    # Write back so the next read is served locally
                    self._local.set(key, value)
                    self._remote_hits += 1
                    logger.debug("cache_hit", tier="remote", key=key)
                    return value

        self._misses += 1
        logger.debug("cache_miss", key=key)
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int = 300) -> None:
        """Write to both tiers. A ttl of zero or less caches nothing."""
        if ttl_seconds <= 0:
            return
        self._local.set(key, value, ttl_seconds)

        if self._remote is not None:
            try:
                await self._remote.set(key, _serialize(value), int(ttl_seconds))
            except Exception as e:
                self._remote_errors += 1
                logger.warning("cache_remote_set_failed", key=key, error=str(e))

    async def delete(self, key: str) -> None:
        self._local.delete(key)

        if self._remote is not None:
            try:
                await self._remote.delete(key)
            except Exception as e:
                self._remote_errors += 1
                logger.warning("cache_remote_delete_failed", key=key, error=str(e))

    # Key builders

    @staticmethod
    def generate_key(kind: str, discriminator: Any) -> str:
        """Build a deterministic key for a kind of cached value.

        kind "func" takes a (name, params) pair, "product" a free-text query,
        "appointment" a (date, service_type) pair. Anything else is joined
        as "<kind>:<discriminator>".
        """
        if kind == "func":
            name, params = discriminator
            return CacheManager.function_key(name, params)
        if kind == "product":
            return CacheManager.product_key(discriminator)
        if kind == "appointment":
            date, service_type = discriminator
            return CacheManager.appointment_key(date, service_type)
        return f"{kind}:{discriminator}"

    @staticmethod
    def function_key(name: str, params: dict | None) -> str:
        encoded = base64.b64encode(canonicalize_params(params).encode("utf-8")).decode("ascii")
        return f"func:{name}:{encoded}"

    @staticmethod
    def product_key(query: str) -> str:
        slug = _WHITESPACE_RE.sub("-", query.strip().casefold())
        return f"product:{slug}"

    @staticmethod
    def appointment_key(date: str, service_type: str) -> str:
        return f"appointment:{date}:{service_type}"

    # Maintenance

    async def warmup(self) -> int:
        """Preload the static per-language answers into both tiers."""
        for key, value in WARMUP_RESPONSES.items():
            await self.set(key, value, WARMUP_TTL_SECONDS)
        logger.info("cache_warmup_complete", entries=len(WARMUP_RESPONSES))
        return len(WARMUP_RESPONSES)

    def cleanup(self) -> int:
        """Purge expired local entries; the remote tier expires on its own."""
        removed = self._local.purge_expired()
        logger.info("cache_cleanup", removed=removed)
        return removed

    def get_stats(self) -> dict:
        lookups = self._local_hits + self._remote_hits + self._misses
        hits = self._local_hits + self._remote_hits
        return {
            "local": {
                "size": len(self._local),
                "max": self._local.max_entries,
                "hits": self._local_hits,
            },
            "remote": {
                "configured": self._remote is not None,
                "hits": self._remote_hits,
                "errors": self._remote_errors,
            },
            "misses": self._misses,
            "hit_rate": round(hits / lookups, 3) if lookups else 0.0,
        }

    async def close(self) -> None:
        if self._remote is not None:
            await self._remote.close()
