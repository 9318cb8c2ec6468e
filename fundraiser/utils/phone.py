"""Payer phone normalization for mobile-money rails."""

import re

DEFAULT_COUNTRY_CODE = "252"

_NON_DIGITS = re.compile(r"\D")


def format_phone(phone, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Return ``phone`` as bare digits prefixed with ``country_code``.

    Separators and leading zeros are dropped, a doubled country code is
    collapsed, and the code is prepended when missing. Input without any
    significant digits yields ``""``.
    """
    if not phone:
        return ""

    cleaned = _NON_DIGITS.sub("", str(phone)).lstrip("0")
    if not cleaned:
        return ""

    while cleaned.startswith(country_code * 2):
        cleaned = cleaned[len(country_code):]

    if not cleaned.startswith(country_code):
        cleaned = f"{country_code}{cleaned}"

    return cleaned
