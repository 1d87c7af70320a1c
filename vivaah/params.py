"""Budget, category, and locality extraction from free text."""

from __future__ import annotations

import re
from typing import Optional, Union

LAKH = 100_000

CATEGORY_KEYWORDS = ["caterer", "decorator", "venue", "photographer", "dj", "makeup"]
CATEGORY_ALIASES = {
    "caterer": ("caterer", "catering"),
    "decorator": ("decorator", "decor"),
    "venue": ("venue", "banquet", "hall", "lawn"),
    "photographer": ("photo",),
    "dj": ("dj", "music"),
    "makeup": ("makeup", "make up", "bridal"),
}

CATEGORY_SYNONYMS = {
    "catering": "caterer",
    "decoration": "decorator",
    "decor": "decorator",
    "banquet": "venue",
    "photography": "photographer",
}

LOCALITY_KEYWORDS = [
    ("navi mumbai", "Navi Mumbai"),
    ("mumbai", "Mumbai"),
    ("bombay", "Mumbai"),
    ("bandra", "Bandra"),
    ("andheri", "Andheri"),
    ("juhu", "Juhu"),
    ("powai", "Powai"),
    ("worli", "Worli"),
    ("colaba", "Colaba"),
    ("dadar", "Dadar"),
    ("goregaon", "Goregaon"),
    ("malad", "Malad"),
    ("borivali", "Borivali"),
    ("chembur", "Chembur"),
    ("vashi", "Vashi"),
    ("thane", "Thane"),
]

_UNIT = r"lakhs?|lacs?|l|rupees?|rs\.?|inr|₹"
BUDGET_UNIT_RE = re.compile(
    rf"(?:(₹|rs\.?|inr)\s*)?(\d[\d,]*(?:\.\d+)?)[,.]*\s*({_UNIT})?(?![a-z])",
    re.IGNORECASE,
)
CATEGORY_RE = re.compile(
    r"\b(" + "|".join(f"{kw}s?" for kw in CATEGORY_KEYWORDS) + r")\b",
    re.IGNORECASE,
)
MIN_BARE_BUDGET = 1000


def to_amount(number: str, unit: str) -> Optional[Union[int, float]]:
    """Rupee amount for a numeric token and its unit; the lakh family multiplies by 100,000."""
    try:
        value = float(number.replace(",", ""))
    except ValueError:
        return None
    if unit.lower().startswith(("l", "lac")):
        value *= LAKH
    return int(value) if value.is_integer() else value


def parse_budget(text: Optional[str]) -> Optional[Union[int, float]]:
    """Purpose: Extract a rupee budget from free text.
    Inputs/Outputs: Input is the user text; output is an amount in rupees or None.
    Side Effects / State: None; pure function.
    Dependencies: BUDGET_UNIT_RE; used by the search flow and the guide predicate.
    Failure Modes: Returns None when no number parses.
    If Removed: Budget filtering never runs.
    Testing Notes: "5 lakh" -> 500000, "₹50000" -> 50000, "hello" -> None,
        "top 5 caterers" -> None (bare small numbers are counts, not budgets).
    """
    # Prefer the first unit-tagged amount, then the first bare amount large enough to be rupees.
    if not text:
        return None
    bare: Optional[Union[int, float]] = None
    for match in BUDGET_UNIT_RE.finditer(text):
        prefix, number, unit = match.group(1), match.group(2), match.group(3)
        unit = unit or prefix or ""
        amount = to_amount(number, unit)
        if amount is None:
            continue
        if unit:
            return amount
        if bare is None and amount >= MIN_BARE_BUDGET:
            bare = amount
    return bare


def parse_category(text: Optional[str]) -> Optional[str]:
    """Return the first category keyword present in text, singularised."""
    if not text:
        return None
    lowered = text.lower()
    found = {match.group(1).lower() for match in CATEGORY_RE.finditer(lowered)}
    for keyword in CATEGORY_KEYWORDS:
        if keyword in found or f"{keyword}s" in found:
            return keyword.rstrip("s")
    return None


def parse_locality(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    lowered = text.lower()
    for keyword, label in LOCALITY_KEYWORDS:
        if re.search(rf"\b{re.escape(keyword)}\b", lowered):
            return label
    return None


def infer_category(text: Optional[str]) -> Optional[str]:
    """parse_category, widened with synonyms such as catering -> caterer."""
    category = parse_category(text)
    if category or not text:
        return category
    lowered = text.lower()
    for synonym, keyword in CATEGORY_SYNONYMS.items():
        if re.search(rf"\b{synonym}", lowered):
            return keyword
    return None
