"""Adapters from collaborator response shapes to canonical vendor records.

normalize_vector_results is total: every input yields a list and nothing
raises. Recognised shapes, tried in order:
    - a top-level list of hits
    - {"vendors": [...]}, {"results": [...]}, {"items": [...]},
      {"matches": [...]}, {"hits": [...]}
    - {"data": {"matches": [...]}}, {"metadata": {"matches": [...]}}
Anything else is the unknown shape and maps to [].
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from .params import to_amount
from .utils import first_value, has_value, to_number

logger = logging.getLogger("vivaah.normalizer")

RESULT_PATHS: List[Tuple[str, ...]] = [
    ("vendors",),
    ("results",),
    ("items",),
    ("matches",),
    ("hits",),
    ("data", "matches"),
    ("metadata", "matches"),
]
HIT_BODY_KEYS = ["metadata", "document", "payload"]

NAME_KEYS = ["name", "title", "vendor_name"]
CITY_KEYS = ["city", "location", "locality"]
CATEGORY_KEYS = ["category", "vendor_type", "sub_category"]
DESC_KEYS = ["short_description", "description", "desc"]
PRICE_MIN_KEYS = ["price_min", "min_price", "price_from"]
PRICE_MAX_KEYS = ["price_max", "max_price", "price_to"]
RATING_KEYS = ["rating", "avg_rating"]
_CURRENCY = r"(?:₹|rs\.?|inr)\s*"
_AMOUNT = r"(\d[\d,]*(?:\.\d+)?)\s*(lakhs?|lacs?|l)?(?![a-z])"
PRICE_AMOUNT_RE = re.compile(rf"(?:{_CURRENCY})?{_AMOUNT}", re.IGNORECASE)
PRICE_RANGE_RE = re.compile(
    rf"(?:{_CURRENCY})?{_AMOUNT}\s*(?:-|to|–)\s*(?:{_CURRENCY})?{_AMOUNT}", re.IGNORECASE
)

CARD_FIELDS = [
    "id",
    "name",
    "category",
    "city",
    "price_min",
    "price_max",
    "is_veg",
    "rating",
    "contact",
    "images",
    "short_description",
]


def _to_plain(value: Any) -> Any:
    # SDK response objects (Pinecone QueryResponse) expose to_dict().
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict) and not isinstance(value, dict):
        return to_dict()
    return value


def _find_hit_list(response: Any) -> Optional[List[Any]]:
    if isinstance(response, list):
        return response
    if not isinstance(response, dict):
        return None
    for path in RESULT_PATHS:
        node: Any = response
        for key in path:
            node = node.get(key) if isinstance(node, dict) else None
        if isinstance(node, list):
            return node
    return None


def _amount(number: str, unit: Optional[str]) -> Optional[float]:
    amount = to_amount(number, unit or "")
    return float(amount) if amount is not None else None


def _price_value(value: Any) -> Optional[float]:
    """Single price from a number or a string such as "Rs. 40,000" or "4.5 lakh"."""
    if not isinstance(value, str):
        return to_number(value)
    match = PRICE_AMOUNT_RE.search(value)
    if not match:
        return None
    return _amount(match.group(1), match.group(2))


def _parse_price_range(value: Any) -> Tuple[Optional[float], Optional[float]]:
    if not isinstance(value, str):
        return to_number(value), None
    match = PRICE_RANGE_RE.search(value)
    if match:
        low_unit, high_unit = match.group(2), match.group(4)
        # "4 - 6 lakh": a unit written once applies to both bounds.
        return _amount(match.group(1), low_unit or high_unit), _amount(match.group(3), high_unit)
    return _price_value(value), None


def _normalize_hit(hit: Any) -> Optional[Dict[str, Any]]:
    hit = _to_plain(hit)
    if not isinstance(hit, dict):
        return None
    body: Dict[str, Any] = {}
    for key in HIT_BODY_KEYS:
        candidate = _to_plain(hit.get(key))
        if isinstance(candidate, dict) and candidate:
            body = candidate
            break
    merged = dict(hit)
    merged.update(body)
    record = {
        "vendor_id": first_value(merged, ["vendor_id"]),
        "id": first_value(hit, ["id", "_id"]) or first_value(body, ["id"]),
        "name": str(first_value(merged, NAME_KEYS) or "").strip(),
        "category": first_value(merged, CATEGORY_KEYS),
        "city": first_value(merged, CITY_KEYS),
        "price_min": _price_value(first_value(merged, PRICE_MIN_KEYS)),
        "price_max": _price_value(first_value(merged, PRICE_MAX_KEYS)),
        "is_veg": merged.get("is_veg"),
        "rating": to_number(first_value(merged, RATING_KEYS)),
        "short_description": first_value(merged, DESC_KEYS),
        "raw_metadata": body or {},
    }
    if record["price_min"] is None and record["price_max"] is None:
        price_range = first_value(merged, ["price_range", "price"])
        if has_value(price_range):
            record["price_min"], record["price_max"] = _parse_price_range(price_range)
    record["_id"] = record["vendor_id"] or record["id"]
    score = first_value(hit, ["_score", "score", "similarity"])
    record["_score"] = to_number(score)
    if not has_value(record["_id"]) and not record["name"]:
        return None
    return record


def normalize_vector_results(response: Any) -> List[Dict[str, Any]]:
    """Purpose: Flatten any vector-search response into candidate records.
    Inputs/Outputs: Input is an arbitrary object; output is a list of dicts with
        _id/_score and canonical vendor fields.
    Side Effects / State: Logs at debug level when a shape is not recognised.
    Dependencies: RESULT_PATHS priority order and _normalize_hit.
    Failure Modes: Never raises; unknown shapes and broken items yield [] / are skipped.
    If Removed: The resolver cannot read candidate ids from vector hits.
    Testing Notes: Pass None, {}, {"data": {"matches": [...]}} and Pinecone-like objects.
    """
    try:
        hits = _find_hit_list(_to_plain(response))
        if hits is None:
            logger.debug("Unrecognised vector response shape: %s", type(response).__name__)
            return []
        records: List[Dict[str, Any]] = []
        for hit in hits:
            try:
                record = _normalize_hit(hit)
            except Exception:  # noqa: BLE001 - a single broken hit must not sink the list
                logger.debug("Skipping malformed vector hit", exc_info=True)
                continue
            if record is not None:
                records.append(record)
        return records
    except Exception:  # noqa: BLE001
        logger.warning("Vector response normalisation failed", exc_info=True)
        return []


def normalize_vendor_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Purpose: Map a relational vendor row onto canonical card field names.
    Inputs/Outputs: Input is a row dict; output is a new dict (original keys kept).
    Side Effects / State: None.
    Dependencies: Field synonym lists above.
    Failure Modes: Missing fields stay None.
    If Removed: Rows using min_price/avg_rating/phone would not render price or rating.
    Testing Notes: {"min_price": "40000", "avg_rating": 4.4} -> price_min 40000.0, rating 4.4.
    """
    record = dict(row)
    record["id"] = row.get("id") if has_value(row.get("id")) else row.get("vendor_id")
    record["name"] = str(first_value(row, NAME_KEYS) or "").strip()
    record["category"] = first_value(row, CATEGORY_KEYS)
    record["city"] = first_value(row, CITY_KEYS)
    record["price_min"] = _price_value(first_value(row, PRICE_MIN_KEYS))
    record["price_max"] = _price_value(first_value(row, PRICE_MAX_KEYS))
    if record["price_min"] is None and record["price_max"] is None and has_value(row.get("price_range")):
        record["price_min"], record["price_max"] = _parse_price_range(row.get("price_range"))
    record["rating"] = to_number(first_value(row, RATING_KEYS))
    record["short_description"] = first_value(row, DESC_KEYS)
    contact = row.get("contact")
    if not has_value(contact):
        parts = [str(row[key]) for key in ("phone", "email", "website") if has_value(row.get(key))]
        contact = " | ".join(parts) or None
    record["contact"] = contact
    images = row.get("images")
    record["images"] = images if isinstance(images, list) else []
    return record


def to_card(record: Dict[str, Any]) -> Dict[str, Any]:
    """Project a merged record onto the UI card fields."""
    card = {key: record.get(key) for key in CARD_FIELDS}
    if not has_value(card["id"]):
        card["id"] = record.get("_id") or record.get("vendor_id")
    if card["images"] is None:
        card["images"] = []
    return card
