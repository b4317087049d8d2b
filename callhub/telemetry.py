"""Analytics recording.

Every analytics write goes through Telemetry.record(), which never raises:
a failing datastore is logged and the request carries on.
"""

from collections import Counter

from callhub.datastore.base import ConversationDatastore
from callhub.utils.logging import get_logger

logger = get_logger(__name__)


class Telemetry:
    """Best-effort analytics recorder with in-process event counters."""

    def __init__(self, datastore: ConversationDatastore):
        self._datastore = datastore
        self._counts: Counter[str] = Counter()
        self._failed_writes = 0

    async def record(
        self,
        event_type: str,
        properties: dict | None = None,
        conversation_id: str | None = None,
    ) -> None:
        """Persist one analytics record; failures are logged, not raised."""
        self._counts[event_type] += 1
        try:
            await self._datastore.track_event(event_type, properties or {}, conversation_id)
        except Exception as e:
            self._failed_writes += 1
            logger.warning("telemetry_write_failed", event_type=event_type, error=str(e))

    def count(self, event_type: str) -> int:
        return self._counts[event_type]

    def get_stats(self) -> dict:
        return {
            "events": dict(self._counts),
            "failed_writes": self._failed_writes,
        }
