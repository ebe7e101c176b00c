"""
Pantry Locator - Text Normalization Helpers.

Canonical forms for store names, street addresses, cities and regions.
These feed the exact-match key and the similarity score used when a new
store is submitted.
"""

import re
from typing import List, Optional

_PUNCTUATION = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

# Trailing legal-entity words that never distinguish two storefronts
_CORPORATE_SUFFIXES = ("inc", "llc", "ltd", "co", "corp", "company")

_UNIT_DESIGNATOR = re.compile(r"(?:\b(?:suite|ste|unit|apt)\b\.?|#)\s*\w+")

_STREET_SUFFIXES = {
    r"\bstreet\b": "st",
    r"\bavenue\b": "ave",
    r"\bboulevard\b": "blvd",
    r"\bdrive\b": "dr",
    r"\blane\b": "ln",
    r"\broad\b": "rd",
    r"\bcourt\b": "ct",
    r"\bplace\b": "pl",
    r"\bparkway\b": "pkwy",
    r"\bcircle\b": "cir",
    r"\bhighway\b": "hwy",
    r"\bterrace\b": "ter",
    r"\bnorth\b": "n",
    r"\bsouth\b": "s",
    r"\beast\b": "e",
    r"\bwest\b": "w",
}


def collapse_whitespace(value: str) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    return _WHITESPACE.sub(" ", value).strip()


def normalize_store_name(name: Optional[str]) -> str:
    """
    Normalize a store display name for comparison.

    "Acme Co." and "ACME" both become "acme"; "Green & Grocer" becomes
    "green and grocer".

    Args:
        name: Raw store name.

    Returns:
        str: Lower-case, punctuation-free name without corporate suffixes.
    """
    if not name:
        return ""
    value = name.lower().replace("&", " and ")
    value = collapse_whitespace(_PUNCTUATION.sub(" ", value))
    tokens = value.split(" ") if value else []
    while len(tokens) > 1 and tokens[-1] in _CORPORATE_SUFFIXES:
        tokens.pop()
    return " ".join(tokens)


def name_tokens(name: Optional[str]) -> List[str]:
    """Distinct tokens of the normalized store name, in order."""
    seen = []
    for token in normalize_store_name(name).split(" "):
        if token and token not in seen:
            seen.append(token)
    return seen


def normalize_address(address: Optional[str]) -> str:
    """
    Normalize a street address for dedup comparison.

    Standardizes street suffixes and removes suite/unit so that
    '1 Main Street, Suite 4' and '1 Main St' produce the same key,
    while '1 Main St' and '9 Broadway' remain distinct.
    """
    if not address:
        return ""
    value = address.lower()
    value = _UNIT_DESIGNATOR.sub(" ", value)
    value = _PUNCTUATION.sub(" ", value)
    for pattern, replacement in _STREET_SUFFIXES.items():
        value = re.sub(pattern, replacement, value)
    return collapse_whitespace(value)


def normalize_place(value: Optional[str]) -> str:
    """Normalize a city, state or region label."""
    if not value:
        return ""
    return collapse_whitespace(_PUNCTUATION.sub(" ", value.lower()))
