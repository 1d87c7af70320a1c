"""Merge, filter, and shortlist vendor records.

Merged order always follows the vector ranking; relational insertion order is
only used when there is no vector ranking at all.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from .models import CandidateRecord
from .normalizer import normalize_vendor_row
from .params import CATEGORY_ALIASES
from .resolver import best_name_match
from .utils import has_value, normalize_key, normalize_text, to_number

SHORTLIST_SIZE = 6
# Containment or better: "Sample Caterers" pairs with "Sample Caterers Pvt Ltd".
NAME_MERGE_MIN_SCORE = 2


def _row_identity(row: Dict[str, Any]) -> str:
    return str(row.get("id") or normalize_key(row.get("name", "")))


def merge_hits(candidates: Sequence[Dict[str, Any]], rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Purpose: Overlay relational rows onto vector hits while keeping vector rank order.
    Inputs/Outputs: Inputs are ranked candidates and relational rows; output is the merged list.
    Side Effects / State: None; inputs are not mutated.
    Dependencies: CandidateRecord for identifiers, normalize_vendor_row for row fields,
        best_name_match for rows found by partial name.
    Failure Modes: None; candidates without a row are emitted as display-only stand-ins.
    If Removed: Vendor cards lose either ranking or relational facts.
    Testing Notes: Vector order [B, A, C] with rows [A, B, C] must merge as [B, A, C].
    """
    row_by_id: Dict[str, Dict[str, Any]] = {}
    row_by_name: Dict[str, Dict[str, Any]] = {}
    normalized_rows = [normalize_vendor_row(row) for row in rows if isinstance(row, dict)]
    for row in normalized_rows:
        if has_value(row.get("id")):
            row_by_id.setdefault(str(row["id"]), row)
        if row.get("name"):
            row_by_name.setdefault(normalize_key(row["name"]), row)

    merged: List[Dict[str, Any]] = []
    seen = set()
    for hit in candidates:
        candidate = CandidateRecord.from_hit(hit)
        row = row_by_id.get(candidate.vendor_id) if candidate.vendor_id else None
        if row is None and candidate.name:
            # Rows found through the name tier carry ids the vector index never saw.
            row = row_by_name.get(normalize_key(candidate.name))
            if row is None:
                unused = [r for r in normalized_rows if _row_identity(r) not in seen]
                row = best_name_match(unused, candidate.name, min_score=NAME_MERGE_MIN_SCORE)
        if row is not None:
            item = dict(row)
            item["_score"] = candidate.score
            identity = _row_identity(row)
        else:
            item = dict(hit)
            item["id"] = candidate.vendor_id
            identity = candidate.vendor_id or normalize_key(candidate.name)
        if identity in seen:
            continue
        seen.add(identity)
        merged.append(item)

    if not merged and normalized_rows:
        return list(normalized_rows)
    return merged


def narrow_by_category(records: Sequence[Dict[str, Any]], category: Optional[str]) -> List[Dict[str, Any]]:
    """Keep records matching category (or with no category); never narrows to nothing."""
    if not category:
        return list(records)
    aliases = CATEGORY_ALIASES.get(category, (category,))
    kept = []
    for record in records:
        value = normalize_text(record.get("category") or "")
        if not value or any(alias in value for alias in aliases):
            kept.append(record)
    return kept or list(records)


def passes_budget(record: Dict[str, Any], budget: float) -> bool:
    """Purpose: Check whether a vendor's price bounds are compatible with a budget.
    Inputs/Outputs: Inputs are a record and a rupee budget; output is a bool.
    Side Effects / State: None.
    Dependencies: to_number for string prices.
    Failure Modes: None; unknown prices count as compatible.
    If Removed: Budget filtering cannot run.
    Testing Notes: 40000-60000 passes for 50000 and fails for 70000.
    """
    low = to_number(record.get("price_min"))
    high = to_number(record.get("price_max"))
    if low is None and high is None:
        return True
    if low is not None and high is not None:
        return low <= budget <= high
    if low is not None:
        return budget >= low
    return budget <= high


def filter_by_budget(records: Sequence[Dict[str, Any]], budget: Optional[float]) -> List[Dict[str, Any]]:
    if budget is None:
        return list(records)
    return [record for record in records if passes_budget(record, budget)]


def shortlist(
    records: Sequence[Dict[str, Any]],
    budget: Optional[float] = None,
    size: int = SHORTLIST_SIZE,
) -> List[Dict[str, Any]]:
    """Purpose: Produce the display shortlist from merged records.
    Inputs/Outputs: Inputs are merged records, optional budget, and size; output has at most size items.
    Side Effects / State: None.
    Dependencies: filter_by_budget.
    Failure Modes: None.
    If Removed: Responses would list every vector hit or none after strict filtering.
    Testing Notes: When the budget filter empties a non-empty list, the unfiltered top items return.
    """
    # An overzealous budget filter must not hide every vendor.
    filtered = filter_by_budget(records, budget)
    if filtered:
        return filtered[:size]
    return list(records)[:size]
