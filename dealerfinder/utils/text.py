"""
Text cleanup helpers shared by adapters and the reconciler.
"""

import re
from typing import Iterable, List, Optional, Tuple

WHITESPACE_RUN = re.compile(r'\s+')

# "Telefon:", "Tel.:", "Phone:" prefixes rendered in front of numbers
PHONE_LABEL_PATTERN = re.compile(r'^\s*(?:telefon|tel\.?|phone|fon)\s*:?\s*', re.IGNORECASE)

# "Berlin, 10115" as rendered by some locators (city first, postal code last)
CITY_COMMA_POSTAL_PATTERN = re.compile(r'^(?P<city>[^,]+),\s*(?P<postal>\d{4,5})\s*$')


def clean(value: Optional[str]) -> str:
    """Trim a possibly missing string."""
    if value is None:
        return ""
    return value.strip()


def clean_optional(value: Optional[str]) -> Optional[str]:
    """Trim; empty becomes None."""
    value = clean(value)
    return value or None


def collapse_whitespace(value: Optional[str]) -> str:
    """Trim and squeeze internal whitespace runs to single spaces."""
    return WHITESPACE_RUN.sub(' ', clean(value))


def split_postal_city(text: Optional[str]) -> Tuple[str, str]:
    """
    Split a combined "postal code + city" string.

    The first whitespace-delimited token is the postal code, the remaining
    tokens joined by single spaces are the city:

        "66111 Saarbrücken"       -> ("66111", "Saarbrücken")
        "10115  Berlin Mitte"     -> ("10115", "Berlin Mitte")
        "66111"                   -> ("66111", "")
    """
    tokens = WHITESPACE_RUN.split(clean(text))
    tokens = [token for token in tokens if token]
    if not tokens:
        return "", ""
    return tokens[0], " ".join(tokens[1:])


def strip_phone_label(value: Optional[str]) -> str:
    return collapse_whitespace(PHONE_LABEL_PATTERN.sub('', clean(value)))


def clean_services(values: Optional[Iterable[str]]) -> List[str]:
    """Trimmed, non-empty, de-duplicated and sorted."""
    if not values:
        return []
    return sorted({clean(value) for value in values if clean(value)})
