"""Pydantic models for the inbound webhook envelope."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Envelope(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class CallCustomer(_Envelope):
    number: str | None = None
    name: str | None = None


class CallInfo(_Envelope):
    id: str | None = None
    customer_number: str | None = None
    customer: CallCustomer | None = None
    assistant_id: str | None = None
    status: str | None = None
    duration: float | None = None
    ended_reason: str | None = None
    costs: dict[str, Any] = Field(default_factory=dict)

    @property
    def caller_number(self) -> str | None:
        if self.customer_number:
            return self.customer_number
        return self.customer.number if self.customer else None


class FunctionCall(_Envelope):
    name: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)


class CallEvent(_Envelope):
    """One webhook delivery from the voice platform."""
    type: str
    call: CallInfo = Field(default_factory=CallInfo)
    function_call: FunctionCall | None = None
    transcript: Any = None
    message: Any = None


class EventKind:
    FUNCTION_CALL = "function-call"
    CALL_STARTED = "call-started"
    CALL_ENDED = "call-ended"
    CONVERSATION_UPDATE = "conversation-update"
    TRANSFER_REQUEST = "transfer-destination-request"
    STATUS_UPDATE = "status-update"
    TRANSCRIPT = "transcript"
