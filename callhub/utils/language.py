"""Script-based language detection for the supported caller languages."""

import re

SUPPORTED_LANGUAGES = ("en", "el")
DEFAULT_LANGUAGE = "en"

# Greek and Coptic + Greek Extended blocks
_GREEK_RE = re.compile(r"[\u0370-\u03FF\u1F00-\u1FFF]")


def detect_language(text: str | None) -> str:
    """Return "el" when the text contains Greek script, otherwise "en"."""
    if not text:
        return DEFAULT_LANGUAGE
    return "el" if _GREEK_RE.search(text) else DEFAULT_LANGUAGE


def detect_language_from_result(result: dict) -> str:
    """Pick the language of a function result, preferring an explicit tag."""
    language = result.get("language")
    if language in SUPPORTED_LANGUAGES:
        return language
    return detect_language(result.get("message"))
