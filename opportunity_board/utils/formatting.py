"""Helpers for turning Airtable role fields into display values."""

import math
import re
from typing import Any

DURATION_BUCKETS = ("0–3", "3–6", "6–9", "9–12", "12+", "TBD")

_BULLET_PREFIX_RE = re.compile(r"^[-•\d.)\s]+")
_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")
_LIST_SPLIT_RE = re.compile(r"\r?\n|,")


def split_bullets(text: str | None) -> list[str]:
    """Split a multi-line field into items, dropping bullet and number markers."""
    if not text or not isinstance(text, str):
        return []
    lines = re.split(r"\r?\n", text)
    items = (_BULLET_PREFIX_RE.sub("", line).strip() for line in lines)
    return [item for item in items if item]


def parse_duration_months(value: Any) -> int | float | None:
    """First number in the value; integral values come back as ``int``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = value
    elif isinstance(value, str):
        match = _NUMBER_RE.search(value)
        if not match:
            return None
        number = float(match.group(1))
    else:
        return None

    if not math.isfinite(number):
        return None
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def bucket_from_months(months: int | float | None) -> str:
    if not months:
        return "TBD"
    if months <= 3:
        return "0–3"
    if months <= 6:
        return "3–6"
    if months <= 9:
        return "6–9"
    if months <= 12:
        return "9–12"
    return "12+"


def as_string_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str)]
    if isinstance(value, str):
        parts = (part.strip() for part in _LIST_SPLIT_RE.split(value))
        return [part for part in parts if part]
    return []


def as_optional_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None
