"""Phone number canonicalization.

Every caller number is reduced to a single E.164 form before it is used as a
cache key or a datastore lookup key, e.g. "99123456", "+357-99-123456" and
"35799123456" all become "+35799123456".
"""

import re

import phonenumbers

_NON_DIGITS_RE = re.compile(r"\D")


def normalize_phone(raw: str | None, default_region: str = "CY") -> str:
    """Return the canonical E.164 form of a phone number.

    Numbers without a country code are read in ``default_region``. A national
    number already prefixed with the region's country code (no "+") is
    recognised as such. Input that cannot be parsed falls back to "+" and its
    digits so the result is still deterministic. Empty input gives "".
    """
    if not raw:
        return ""
    candidate = raw.strip()
    digits = _NON_DIGITS_RE.sub("", candidate)
    if not digits:
        return ""

    if candidate.startswith("+"):
        text = "+" + digits
    elif digits.startswith("00"):
        text = "+" + digits[2:]
    else:
        text = digits

    try:
        number = phonenumbers.parse(text, default_region)
    except phonenumbers.NumberParseException:
        return "+" + digits.lstrip("0")

    if not phonenumbers.is_possible_number(number):
        return "+" + digits.lstrip("0")
    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)


def phone_cache_key(canonical_phone: str) -> str:
    return f"customer_profile:{canonical_phone}"
