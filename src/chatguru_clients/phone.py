"""Phone number normalization for ChatGuru chat numbers."""

from __future__ import annotations

import re

COUNTRY_PREFIX = "55"


def normalize_phone(raw: str) -> str:
    """Normalize a phone number to country + area + subscriber digits.

    Accepts ``+55 (81) 91095702``, ``55 81 9109-5702``, ``81991095702``
    and ``5581991095702``. Numbers with 10 or 11 digits are treated as
    domestic and get the country prefix; anything else is returned as
    bare digits.
    """
    digits = re.sub(r"\D", "", raw or "")
    if digits.startswith(COUNTRY_PREFIX) and len(digits) >= 12:
        return digits
    if 10 <= len(digits) <= 11:
        return COUNTRY_PREFIX + digits
    return digits
