"""Static store answers, and the subset preloaded into both cache tiers at startup."""

WARMUP_TTL_SECONDS = 86400  # 24 hours

STORE_INFO: dict[str, dict[str, str]] = {
    "hours": {
        "en": "We are open Monday to Friday 9am-7pm, Saturday 9am-2pm. We're closed on Sundays.",
        "el": (
            "Είμαστε ανοιχτά Δευτέρα έως Παρασκευή 9π.μ.-7μ.μ., Σάββατο 9π.μ.-2μ.μ. "
            "Την Κυριακή είμαστε κλειστά."
        ),
    },
    "location": {
        "en": (
            "We are located at 171 Makarios Avenue in Nicosia, near the city center. "
            "Free parking is available in front of the store."
        ),
        "el": (
            "Βρισκόμαστε στη Λεωφόρο Μακαρίου 171 στη Λευκωσία, κοντά στο κέντρο της πόλης. "
            "Διαθέσιμη δωρεάν στάθμευση μπροστά από το κατάστημα."
        ),
    },
    "contact": {
        "en": "You can reach us by phone at 77-111-104 or email us at info@armenius.cy.",
        "el": "Μπορείτε να μας καλέσετε στο 77-111-104 ή να μας στείλετε email στο info@armenius.cy.",
    },
    "services": {
        "en": (
            "We offer computer repairs, custom PC building, technical consultation, "
            "and after-sales support."
        ),
        "el": (
            "Προσφέρουμε επισκευές υπολογιστών, κατασκευή custom PC, τεχνική συμβουλευτική "
            "και υποστήριξη μετά την πώληση."
        ),
    },
}

WARMUP_TOPICS = ("hours", "location", "contact")


def build_warmup_responses() -> dict[str, dict]:
    """Key every warmed topic as store:<topic>:<language>."""
    return {
        f"store:{topic}:{language}": {"message": message, "language": language, "cached": True}
        for topic in WARMUP_TOPICS
        for language, message in STORE_INFO[topic].items()
    }


WARMUP_RESPONSES: dict[str, dict] = build_warmup_responses()
