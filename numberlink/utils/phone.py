# numberlink/utils/phone.py
"""Korean phone number helpers shared by individual and company lookups."""

import re

_SEPARATORS = re.compile(r"[\s\-]")


def normalize_phone(phone: str) -> str:
    """Strip hyphens and spaces: '010-1234-5678' → '01012345678'."""
    return _SEPARATORS.sub("", phone or "")


def same_phone(a: str, b: str) -> bool:
    return normalize_phone(a) == normalize_phone(b)
