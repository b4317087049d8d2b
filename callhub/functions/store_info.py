"""Static store information (hours, location, contact, services)."""

from callhub.cache.manager import CacheManager
from callhub.cache.warmup import STORE_INFO
from callhub.conversation.models import CallContext
from callhub.functions.base import FunctionHandler
from callhub.utils.language import SUPPORTED_LANGUAGES, detect_language

# Keywords (English and Greek) mapping a free-text info_type to a topic
_TOPIC_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("hours", ("hours", "open", "ώρες", "ωράριο")),
    ("location", ("location", "address", "directions", "τοποθεσία", "διεύθυνση")),
    ("contact", ("contact", "phone", "email", "τηλέφωνο", "επικοινωνία")),
    ("services", ("services", "repair", "υπηρεσίες")),
]


def resolve_topic(info_type: str | None) -> str:
    text = (info_type or "").lower()
    for topic, keywords in _TOPIC_KEYWORDS:
        if any(k in text for k in keywords):
            return topic
    return "general"


class GetStoreInfo(FunctionHandler):
    name = "getStoreInfo"
    ttl_seconds = 86400  # store info rarely changes
    fallback_message = "You can reach us at 77-111-104 or visit us at 171 Makarios Avenue in Nicosia."

    def __init__(self, cache: CacheManager):
        self._cache = cache

    async def execute(self, params: dict, context: CallContext) -> dict:
        language = params.get("language")
        if language not in SUPPORTED_LANGUAGES:
            language = detect_language(params.get("info_type") or context.transcript)
        topic = resolve_topic(params.get("info_type"))

        # Prewarmed answers are served as-is
        warmed = await self._cache.get(f"store:{topic}:{language}")
        if warmed is not None:
            return {"type": topic, **warmed}

        if topic == "general":
            message = " ".join(
                STORE_INFO[t][language] for t in ("hours", "location", "contact")
            )
        else:
            message = STORE_INFO[topic][language]
        return {"type": topic, "language": language, "message": message}


MAPS_LINK = "https://maps.google.com/?q=171+Makarios+Avenue+Nicosia+Cyprus"

_DIRECTIONS: dict[str, dict[str, str]] = {
    "en": {
        "intro": "We are located at 171 Makarios Avenue in Nicosia. ",
        "car": "By car: Follow Makarios Avenue towards the city center. Free parking available.",
        "bus": "By bus: Multiple bus lines pass through Makarios Avenue. Bus stop near the store.",
        "any": "Easily accessible by car or public transport. Free parking available in front of the store.",
    },
    "el": {
        "intro": "Βρισκόμαστε στη Λεωφόρο Μακαρίου 171 στη Λευκωσία. ",
        "car": "Με αυτοκίνητο: Ακολουθήστε τη Λεωφόρο Μακαρίου προς το κέντρο. Διαθέσιμη δωρεάν στάθμευση.",
        "bus": "Με λεωφορείο: Πολλές γραμμές περνούν από τη Λεωφόρο Μακαρίου. Στάση κοντά στο κατάστημα.",
        "any": "Εύκολα προσβάσιμο με αυτοκίνητο ή δημόσια συγκοινωνία. Δωρεάν στάθμευση διαθέσιμη.",
    },
}

_TRANSPORT_ALIASES = {
    "car": "car",
    "αυτοκίνητο": "car",
    "bus": "bus",
    "λεωφορείο": "bus",
}


class GetDirections(FunctionHandler):
    name = "getDirections"
    ttl_seconds = 86400
    fallback_message = (
        "We are located at 171 Makarios Avenue in Nicosia. You can find us near the city center."
    )

    async def execute(self, params: dict, context: CallContext) -> dict:
        language = params.get("language")
        if language not in SUPPORTED_LANGUAGES:
            language = detect_language(params.get("from_location") or params.get("transport_method"))
        transport = _TRANSPORT_ALIASES.get((params.get("transport_method") or "").strip().lower(), "any")

        texts = _DIRECTIONS[language]
        return {
            "type": "directions",
            "language": language,
            "message": texts["intro"] + texts[transport],
            "location": STORE_INFO["location"][language],
            "maps_link": MAPS_LINK,
        }
