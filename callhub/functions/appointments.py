"""Appointment availability and booking."""

from datetime import datetime, time

from callhub.conversation.models import CallContext
from callhub.datastore.base import ConversationDatastore
from callhub.functions.base import FunctionHandler

OPENING_HOURS: dict[int, tuple[time, time] | None] = {
    0: (time(9), time(19)),
    1: (time(9), time(19)),
    2: (time(9), time(19)),
    3: (time(9), time(19)),
    4: (time(9), time(19)),
    5: (time(9), time(14)),
    6: None,  # Closed
}

SERVICE_TYPES = ("pc_repair", "consultation", "pickup", "custom_build")
DEFAULT_DURATION_MINUTES = 30


def parse_slot(date_str: str, time_str: str | None) -> datetime:
    """Parse YYYY-MM-DD and HH:MM into a naive local datetime.

    Raises:
        ValueError: the date or time is malformed.
    """
    return datetime.strptime(f"{date_str} {time_str or '10:00'}", "%Y-%m-%d %H:%M")


def within_opening_hours(slot: datetime, duration_minutes: int) -> bool:
    hours = OPENING_HOURS[slot.weekday()]
    if hours is None:
        return False
    opens, closes = hours
    end_minutes = slot.hour * 60 + slot.minute + duration_minutes
    return slot.time() >= opens and end_minutes <= closes.hour * 60 + closes.minute


class CheckAppointmentAvailability(FunctionHandler):
    name = "checkAppointmentAvailability"
    ttl_seconds = 60
    fallback_message = "I'm having trouble checking appointments right now. Please call us at 77-111-104."

    def __init__(self, datastore: ConversationDatastore):
        self._datastore = datastore

    async def execute(self, params: dict, context: CallContext) -> dict:
        try:
            slot = parse_slot(params["date"], params.get("time"))
        except (KeyError, ValueError):
            return {
                "error": True,
                "message": "Which date and time would suit you? For example 2025-03-14 at 10:00.",
                "requires_input": True,
            }
        duration = int(params.get("duration_minutes") or DEFAULT_DURATION_MINUTES)

        if not within_opening_hours(slot, duration):
            return {"available": False, "message": "We're closed at that time. Would another time work?"}

        available = await self._datastore.check_availability(slot, duration)
        message = (
            f"{slot:%A %d %B at %H:%M} is available."
            if available
            else f"{slot:%A %d %B at %H:%M} is already booked. Would another time work?"
        )
        return {"available": available, "slot": slot.isoformat(), "message": message}


class BookAppointment(FunctionHandler):
    name = "bookAppointment"
    ttl_seconds = 0  # never cache bookings
    cacheable = False
    fallback_message = (
        "I'm having trouble with our booking system. Please call us directly at 77-111-104 "
        "to schedule your appointment."
    )

    def __init__(self, datastore: ConversationDatastore):
        self._datastore = datastore

    async def execute(self, params: dict, context: CallContext) -> dict:
        missing = [k for k in ("customer_name", "date") if not params.get(k)]
        phone = params.get("customer_phone") or context.customer_number
        if not phone:
            missing.append("customer_phone")
        if missing:
            return {
                "success": False,
                "error": True,
                "message": f"To book I still need your {', '.join(m.replace('_', ' ') for m in missing)}.",
                "missing": missing,
            }

        try:
            slot = parse_slot(params["date"], params.get("time"))
        except ValueError:
            return {"success": False, "error": True, "message": "I didn't catch that date. Could you repeat it?"}

        duration = int(params.get("duration_minutes") or DEFAULT_DURATION_MINUTES)
        service_type = params.get("service_type") if params.get("service_type") in SERVICE_TYPES else "consultation"

        if not within_opening_hours(slot, duration) or not await self._datastore.check_availability(slot, duration):
            return {
                "success": False,
                "error": True,
                "message": f"Sorry, {slot:%A %d %B at %H:%M} isn't available. Would another time work?",
            }

        appointment = await self._datastore.create_appointment({
            "customer_name": params["customer_name"],
            "customer_phone": phone,
            "service_type": service_type,
            "appointment_time": slot,
            "duration_minutes": duration,
            "call_id": context.call_id,
        })
        return {
            "success": True,
            "appointment_id": appointment["id"],
            "message": (
                f"You're booked for {service_type.replace('_', ' ')} on "
                f"{slot:%A %d %B at %H:%M}. We'll see you then, {params['customer_name'].split(' ')[0]}!"
            ),
        }
