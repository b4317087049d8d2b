"""Abstract base class for business operations callable by the voice agent."""

from abc import ABC, abstractmethod

from callhub.conversation.models import CallContext

DEFAULT_TTL_SECONDS = 300


class FunctionHandler(ABC):
    """One named operation. Implementations can be registered independently.

    Class attributes left as ``None`` are filled with registry defaults.
    A ttl of 0 or ``cacheable = False`` disables memoization; mutating
    operations (bookings, order writes) must use one of them.
    """

    name: str = ""
    ttl_seconds: int | None = None
    cacheable: bool = True
    fallback_message: str | None = None

    @abstractmethod
    async def execute(self, params: dict, context: CallContext) -> dict:
        """Run the operation.

        Args:
            params: Parameters supplied by the voice platform.
            context: Call and customer context.

        Returns:
            A JSON-serializable result. ``{"error": True, ...}`` marks a
            business-level failure that must not be cached, and
            ``{"personalized": True, ...}`` an answer derived from the
            caller rather than from ``params``, which is not cached either.
        """
