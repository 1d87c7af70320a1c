import re
import unicodedata
from typing import Any, Dict, Iterable, Optional

NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")


def normalize_text(text: str) -> str:
    """Purpose: Normalize free-form text for stable matching in the pipeline.
    Inputs/Outputs: Input is a raw string; output is a lowercase ASCII-only string with
        diacritics removed and whitespace collapsed.
    Side Effects / State: None; pure function.
    Dependencies: Uses unicodedata and regex; called by ranking and resolver name matching.
    Failure Modes: Returns an empty string when input is falsy.
    If Removed: Name matching between vector hits and relational rows misses on case/accents.
    Testing Notes: "Café Royale " and "cafe royale" must normalize to the same string.
    """
    # Normalize to lowercase and strip diacritics for consistent matching.
    if not text:
        return ""
    lowered = str(text).lower()
    decomposed = unicodedata.normalize("NFD", lowered)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    cleaned = re.sub(r"[^a-z0-9\s\-_/.&]+", " ", stripped)
    return re.sub(r"\s+", " ", cleaned).strip()


def normalize_key(text: str) -> str:
    """Collapse normalize_text output into a compact key without spaces."""
    return normalize_text(text).replace(" ", "")


def to_number(value: Any) -> Optional[float]:
    """Purpose: Coerce a price/rating-like value into a float.
    Inputs/Outputs: Input is any value; output is a float or None.
    Side Effects / State: None; pure function.
    Dependencies: Used by the normalizer, budget filter, and composer.
    Failure Modes: Booleans, empty strings, and non-numeric text return None.
    If Removed: Budget filtering compares strings and silently drops vendors.
    Testing Notes: "₹40,000" -> 40000.0, "Rs. 40,000" -> 40000.0, "abc" -> None, True -> None.
    """
    # Take the first numeric token; currency prefixes such as "Rs." must not leak a dot.
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = NUMBER_RE.search(str(value))
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def first_value(record: Dict[str, Any], keys: Iterable[str]) -> Any:
    """Return the first non-empty value among keys, or None."""
    for key in keys:
        value = record.get(key)
        if has_value(value):
            return value
    return None


def format_inr(amount: Any) -> str:
    """Purpose: Render a rupee amount with Indian digit grouping (1,50,000).
    Inputs/Outputs: Input is a number-like value; output is a "₹..." string or "".
    Side Effects / State: None.
    Dependencies: Uses to_number; used by composer price lines.
    Failure Modes: Non-numeric input returns "".
    If Removed: Price summaries fall back to raw floats such as 150000.0.
    Testing Notes: 150000 -> "₹1,50,000"; 999 -> "₹999".
    """
    number = to_number(amount)
    if number is None:
        return ""
    whole = str(int(round(number)))
    if len(whole) <= 3:
        return f"₹{whole}"
    head, tail = whole[:-3], whole[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return "₹" + ",".join(groups + [tail])
