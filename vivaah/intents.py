"""Intent predicates for vendor routing.

Precedence when several sub-intents match: guide > details > reviews > search.
Keyword lists are module-level so deployments can tune them without touching
the predicates.
"""

from __future__ import annotations

import re
from typing import Optional

from .params import parse_budget

INTENT_GUIDE = "guide"
INTENT_DETAILS = "details"
INTENT_REVIEWS = "reviews"
INTENT_SEARCH = "search"

VENDOR_KEYWORDS = [
    "vendor",
    "caterer",
    "catering",
    "venue",
    "wedding",
    "photographer",
    "photography",
    "makeup",
    "decorator",
    "decoration",
    "dj",
    "banquet",
    "mehendi",
    "planner",
]
CITY_KEYWORDS = ["mumbai", "bombay"]
GUIDE_CATEGORY_TERMS = [
    "caterer",
    "catering",
    "decorator",
    "decoration",
    "venue",
    "banquet",
    "photographer",
    "photography",
    "dj",
    "makeup",
]

# Whole words with an optional plural: "djs" matches, "django" does not.
VENDOR_RE = re.compile(r"\b(" + "|".join(VENDOR_KEYWORDS + CITY_KEYWORDS) + r")(?:s|es)?\b", re.IGNORECASE)
GUIDE_RE = re.compile(r"\b(recommend\w*|best|top|guide)\b", re.IGNORECASE)
GUIDE_CATEGORY_RE = re.compile(r"\b(" + "|".join(GUIDE_CATEGORY_TERMS) + r")(?:s|es)?\b", re.IGNORECASE)
MORE_DETAILS_RE = re.compile(r"(more details on|details on|tell me more about)", re.IGNORECASE)
REVIEWS_RE = re.compile(r"(reviews|ratings|feedback)", re.IGNORECASE)

NAME_AFTER_DETAILS_RE = re.compile(
    r"(?:more details on|details on|tell me more about)\s*(.*)$", re.IGNORECASE | re.DOTALL
)
NAME_AFTER_REVIEWS_RE = re.compile(r"(?:reviews|ratings|feedback)\s*(.*)$", re.IGNORECASE | re.DOTALL)
LEADING_CONNECTOR_RE = re.compile(r"^(?:(?:for|of|on|about|the|from)\s+)+", re.IGNORECASE)


def is_vendor_query(text: Optional[str]) -> bool:
    """Purpose: Decide whether an utterance belongs to the vendor domain.
    Inputs/Outputs: Input is user text; output is True for vendor/city keywords.
    Side Effects / State: None.
    Dependencies: VENDOR_KEYWORDS and CITY_KEYWORDS.
    Failure Modes: None text returns False.
    If Removed: Every message goes to the general LLM path.
    Testing Notes: "caterers in Bombay" -> True; "adjust" and "django" -> False.
    """
    if not text:
        return False
    return bool(VENDOR_RE.search(text))


def is_guide_query(text: Optional[str]) -> bool:
    """Recommend/best/top/guide wording plus a category term, without a concrete budget."""
    if not text:
        return False
    if not (GUIDE_RE.search(text) and GUIDE_CATEGORY_RE.search(text)):
        return False
    return parse_budget(text) is None


def is_more_details_query(text: Optional[str]) -> bool:
    return bool(text and MORE_DETAILS_RE.search(text))


def is_reviews_query(text: Optional[str]) -> bool:
    return bool(text and REVIEWS_RE.search(text))


def classify_vendor_intent(text: Optional[str]) -> str:
    """Purpose: Pick the vendor sub-flow for an utterance.
    Inputs/Outputs: Input is user text; output is one of guide/details/reviews/search.
    Side Effects / State: None.
    Dependencies: The four predicates above, checked in precedence order.
    Failure Modes: None; falls through to search.
    If Removed: The orchestrator cannot dispatch vendor sub-flows.
    Testing Notes: "tell me more about the best caterers" -> guide (guide wins).
    """
    # First match wins.
    if is_guide_query(text):
        return INTENT_GUIDE
    if is_more_details_query(text):
        return INTENT_DETAILS
    if is_reviews_query(text):
        return INTENT_REVIEWS
    return INTENT_SEARCH


def extract_vendor_name(text: Optional[str], intent: str) -> Optional[str]:
    """Capture the vendor name after a details/reviews trigger phrase."""
    if not text:
        return None
    pattern = NAME_AFTER_DETAILS_RE if intent == INTENT_DETAILS else NAME_AFTER_REVIEWS_RE
    match = pattern.search(text)
    if not match:
        return None
    name = LEADING_CONNECTOR_RE.sub("", match.group(1).strip())
    name = name.strip().strip("?!.,:;\"'").strip()
    return name or None
