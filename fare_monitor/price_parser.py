"""Price extraction from fare markup fragments.

Two tiny readers, one per fare type:

* points   – text content of the fragment, ``,`` removed, leading integer;
* currency – first digit run after a ``$`` sign in the raw markup.

Currency mode does **not** strip thousands separators: ``"$1,234"`` reads
as ``1`` because the digit run stops at the comma. It is unclear whether
separators were ever meant to be handled for currency fares, so the
asymmetry with points mode is kept as-is and pinned by tests.

Failures are returned as ``nan`` and never raised.
"""

from __future__ import annotations

import math

from bs4 import BeautifulSoup

from .models import FareType

NAN = float("nan")
DIGITS = "0123456789"


def _text_content(fragment: str) -> str:
    return BeautifulSoup(fragment, "html.parser").get_text()


def _leading_int(text: str) -> float:
    """Read an optionally signed integer prefix, ignoring leading spaces."""
    text = text.lstrip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    digits = ""
    for ch in text:
        if ch not in DIGITS:
            break
        digits += ch
    if not digits:
        return NAN
    return sign * int(digits)


def parse_points(fragment: str) -> float:
    return _leading_int(_text_content(fragment).replace(",", ""))


def parse_currency(fragment: str) -> float:
    pos = fragment.find("$")
    while pos != -1:
        i = pos + 1
        while i < len(fragment) and fragment[i] not in DIGITS:
            if fragment[i] == "\n":
                break
            i += 1
        if i < len(fragment) and fragment[i] in DIGITS:
            end = i
            while end < len(fragment) and fragment[end] in DIGITS:
                end += 1
            return int(fragment[i:end])
        pos = fragment.find("$", pos + 1)
    return NAN


def parse_price(fragment: str, fare_type: FareType) -> float:
    """Return the price found in *fragment*, or ``nan`` if there is none."""
    if fare_type is FareType.POINTS:
        return parse_points(fragment)
    return parse_currency(fragment)


def format_price(price: float | None, fare_type: FareType) -> str:
    """Render *price* as ``$199`` or ``199 pts``."""
    if price is None or not math.isfinite(price):
        return "n/a"
    if float(price).is_integer():
        price = int(price)
    if fare_type is FareType.POINTS:
        return f"{price} pts"
    return f"${price}"


__all__ = ["parse_price", "parse_points", "parse_currency", "format_price"]
