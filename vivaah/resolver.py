"""Vendor enrichment across vector search, the relational store, and the web.

Tier order for lists: id lookup -> name lookup (sequential, bounded) ->
relational-only listing when the vector tier produced nothing. Single-vendor
flows add the web tier. A collaborator failure at any tier counts as "no
result at this tier".
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from .models import CandidateRecord, WebResult
from .normalizer import normalize_vector_results
from .utils import normalize_text

logger = logging.getLogger("vivaah.resolver")

T = TypeVar("T")

GENERIC_NAME_TOKENS = {
    "the",
    "and",
    "&",
    "of",
    "caterer",
    "caterers",
    "catering",
    "decorator",
    "decorators",
    "decor",
    "events",
    "event",
    "services",
    "photography",
    "photographer",
    "studio",
    "studios",
    "banquet",
    "banquets",
    "hall",
    "venue",
    "makeup",
    "artist",
    "dj",
    "mumbai",
}
GUIDE_BUCKET_ORDERS = {
    "luxury": "max_price.desc",
    "veg": "avg_rating.desc",
    "regional": "avg_rating.desc",
    "budget": "min_price.asc",
}


def collect_ids(candidates: Iterable[Dict[str, Any]]) -> List[str]:
    """Identifiers from candidates in rank order, deduplicated."""
    ids: List[str] = []
    for hit in candidates:
        vendor_id = CandidateRecord.from_hit(hit).vendor_id
        if vendor_id and vendor_id not in ids:
            ids.append(vendor_id)
    return ids


def name_match_score(row_name: Any, target: str) -> int:
    """Purpose: Score how well a row name matches a requested vendor name.
    Inputs/Outputs: Inputs are the row name and requested name; output is 0-3.
    Side Effects / State: None.
    Dependencies: normalize_text and GENERIC_NAME_TOKENS.
    Failure Modes: None; blank names score 0.
    If Removed: Details/reviews could describe whichever vendor the vector index ranked first.
    Testing Notes: "Sample Caterers" vs "Royal Caterers" scores 0 (generic words ignored).
    """
    row_norm = normalize_text(str(row_name or ""))
    target_norm = normalize_text(target)
    if not row_norm or not target_norm:
        return 0
    if row_norm == target_norm:
        return 3
    if target_norm in row_norm or row_norm in target_norm:
        return 2
    target_tokens = set(target_norm.split()) - GENERIC_NAME_TOKENS
    row_tokens = set(row_norm.split()) - GENERIC_NAME_TOKENS
    if target_tokens and len(target_tokens & row_tokens) * 2 >= len(target_tokens):
        return 1
    return 0


def best_name_match(
    rows: Sequence[Dict[str, Any]], target: str, min_score: int = 1
) -> Optional[Dict[str, Any]]:
    """Highest-scoring row for target, or None when nothing reaches min_score."""
    best: Optional[Dict[str, Any]] = None
    best_score = min_score - 1
    for row in rows:
        score = name_match_score(row.get("name"), target)
        if score > best_score:
            best, best_score = row, score
    return best


class VendorResolver:
    """Runs the enrichment tiers against injected collaborators."""

    def __init__(
        self,
        vector: Any,
        store: Any,
        web: Any = None,
        top_k: int = 8,
        name_fallback_limit: int = 6,
        rows_per_name: int = 3,
        web_results: int = 3,
    ) -> None:
        self._vector = vector
        self._store = store
        self._web = web
        self._top_k = top_k
        self._name_fallback_limit = name_fallback_limit
        self._rows_per_name = rows_per_name
        self._web_results = web_results

    async def _safe(self, label: str, call: Awaitable[T], default: T) -> T:
        try:
            return await call
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - collaborator failures degrade to empty results
            logger.warning("%s failed: %s", label, exc)
            return default

    async def vector_candidates(
        self, query: str, top_k: Optional[int] = None, filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        if self._vector is None or not query:
            return []
        response = await self._safe(
            "Vector search", self._vector.search(query, top_k=top_k or self._top_k, filters=filters), {}
        )
        return normalize_vector_results(response)

    async def _rows_by_ids(self, ids: Sequence[str]) -> List[Dict[str, Any]]:
        if not ids:
            return []
        return await self._safe("Vendor id lookup", self._store.fetch_by_ids(ids), [])

    async def _rows_by_names(self, names: Sequence[str]) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        seen = set()
        # Sequential on purpose: keeps relational load bounded per request.
        for name in names[: self._name_fallback_limit]:
            found = await self._safe(
                f"Vendor name lookup '{name}'",
                self._store.search_by_name(name, limit=self._rows_per_name),
                [],
            )
            for row in found[: self._rows_per_name]:
                key = row.get("id") or normalize_text(row.get("name", ""))
                if key in seen:
                    continue
                seen.add(key)
                rows.append(row)
        return rows

    @staticmethod
    def _candidate_names(candidates: Sequence[Dict[str, Any]], extra: Sequence[str] = ()) -> List[str]:
        names: List[str] = []
        seen = set()
        for name in list(extra) + [str(hit.get("name") or "") for hit in candidates]:
            key = normalize_text(name)
            if key and key not in seen:
                seen.add(key)
                names.append(name.strip())
        return names

    async def enrich(self, candidates: Sequence[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], str]:
        """Purpose: Fetch relational rows for vector candidates (id tier, then name tier).
        Inputs/Outputs: Input is normalized candidates; output is (rows, tier label).
        Side Effects / State: Up to 1 + name_fallback_limit store queries.
        Dependencies: collect_ids, store.fetch_by_ids, store.search_by_name.
        Failure Modes: Store errors are logged and treated as empty tiers.
        If Removed: Vendor cards show only vector metadata.
        Testing Notes: When ids find nothing, at most 6 names are looked up, 3 rows each.
        """
        rows = await self._rows_by_ids(collect_ids(candidates))
        if rows:
            return rows, "id"
        rows = await self._rows_by_names(self._candidate_names(candidates))
        if rows:
            return rows, "name"
        return [], "none"

    async def relational_only(self, category: Optional[str], city: Optional[str], limit: int) -> List[Dict[str, Any]]:
        return await self._safe(
            "Relational vendor listing",
            self._store.search_vendors(category=category, city=city, order="avg_rating.desc", limit=limit),
            [],
        )

    async def search(
        self, query: str, category: Optional[str] = None, city: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]], str]:
        """Candidates plus enriched rows for a free-text vendor search."""
        candidates = await self.vector_candidates(query)
        if candidates:
            rows, tier = await self.enrich(candidates)
            return candidates, rows, tier
        rows = await self.relational_only(category, city, limit=self._top_k)
        return [], rows, "relational" if rows else "none"

    async def resolve_single(self, name: str) -> Optional[Dict[str, Any]]:
        """Purpose: Find the relational row for one named vendor.
        Inputs/Outputs: Input is a vendor name; output is the best matching row or None.
        Side Effects / State: Vector search plus id and name tier store queries.
        Dependencies: vector_candidates, best_name_match.
        Failure Modes: Collaborator errors degrade to None (web fallback follows).
        If Removed: Details and reviews flows cannot locate vendors.
        Testing Notes: A vector hit for a different vendor must not be returned.
        """
        candidates = await self.vector_candidates(name, top_k=3)
        rows = await self._rows_by_ids(collect_ids(candidates))
        match = best_name_match(rows, name)
        if match is not None:
            return match
        rows = await self._rows_by_names(self._candidate_names(candidates, extra=[name]))
        return best_name_match(rows, name)

    async def web_fallback(self, query: str) -> List[WebResult]:
        if self._web is None:
            return []
        return await self._safe("Web search", self._web.search(query, max_results=self._web_results), [])

    async def vendor_details(self, vendor_id: str) -> Dict[str, Any]:
        """Images, offers, top reviews, and review stats fetched concurrently."""
        images, offers, reviews, stats = await asyncio.gather(
            self._safe("Vendor images", self._store.get_images(vendor_id), []),
            self._safe("Vendor offers", self._store.get_offers(vendor_id), []),
            self._safe("Vendor reviews", self._store.get_reviews(vendor_id), []),
            self._safe("Vendor review stats", self._store.get_review_stats(vendor_id), {}),
        )
        return {"images": images, "offers": offers, "reviews": reviews, "stats": stats}

    async def vendor_reviews(self, vendor_id: str, limit: int = 5) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        reviews, stats = await asyncio.gather(
            self._safe("Vendor reviews", self._store.get_reviews(vendor_id, limit=limit), []),
            self._safe("Vendor review stats", self._store.get_review_stats(vendor_id), {}),
        )
        return reviews, stats

    async def guide_buckets(self, category: Optional[str], city: Optional[str], per_bucket: int = 3) -> Dict[str, List[Dict[str, Any]]]:
        """Purpose: Fetch the four guide buckets (luxury, veg, regional, budget).
        Inputs/Outputs: Inputs are category and optional city; output maps bucket -> rows.
        Side Effects / State: Four independent store reads issued concurrently.
        Dependencies: store.search_vendors, asyncio.gather.
        Failure Modes: A failed bucket is empty; the others still return.
        If Removed: Guide mode has no data.
        Testing Notes: The regional bucket is empty when no city was mentioned.
        """
        async def _empty() -> List[Dict[str, Any]]:
            return []

        luxury, veg, regional, budget = await asyncio.gather(
            self._safe(
                "Guide luxury bucket",
                self._store.search_vendors(category=category, order=GUIDE_BUCKET_ORDERS["luxury"], limit=per_bucket),
                [],
            ),
            self._safe(
                "Guide veg bucket",
                self._store.search_vendors(
                    category=category, is_veg=True, order=GUIDE_BUCKET_ORDERS["veg"], limit=per_bucket
                ),
                [],
            ),
            self._safe(
                "Guide regional bucket",
                self._store.search_vendors(
                    category=category, city=city, order=GUIDE_BUCKET_ORDERS["regional"], limit=per_bucket
                )
                if city
                else _empty(),
                [],
            ),
            self._safe(
                "Guide budget bucket",
                self._store.search_vendors(category=category, order=GUIDE_BUCKET_ORDERS["budget"], limit=per_bucket),
                [],
            ),
        )
        return {"luxury": luxury, "veg": veg, "regional": regional, "budget": budget}
