"""Relational vendor store backed by Supabase's PostgREST API.

Tables: vendors, vendor_images, vendor_offers, vendor_reviews (vendor_id FK).
Errors propagate as httpx.HTTPError; callers decide whether a failure is fatal.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

import httpx

from .config import Settings
from .params import CATEGORY_ALIASES

logger = logging.getLogger("vivaah.store")

VENDOR_COLUMNS = (
    "id,name,category,sub_category,short_description,long_description,address,city,"
    "phone,email,website,min_price,max_price,currency,capacity,avg_rating,rating_count,is_veg"
)
_POSTGREST_RESERVED_RE = re.compile(r"[*,()\"\\:]")


def _quote(value: Any) -> str:
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def _like_term(text: str) -> str:
    # PostgREST uses * as the wildcard and treats , ( ) as list syntax.
    cleaned = _POSTGREST_RESERVED_RE.sub(" ", text or "")
    return re.sub(r"\s+", " ", cleaned).strip()


class SupabaseVendorStore:
    """Async PostgREST client for vendor rows and their related tables."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        """Purpose: Keep connection settings; the HTTP client is created in connect().
        Inputs/Outputs: Inputs are Settings and an optional httpx transport; no return value.
        Side Effects / State: None until connect().
        Dependencies: httpx.AsyncClient.
        Failure Modes: None at init.
        If Removed: Vendor enrichment has no relational source.
        Testing Notes: Pass httpx.MockTransport to inspect the generated PostgREST queries.
        """
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> None:
        """Create the shared HTTP client; raises ValueError when Supabase is not configured."""
        if not self._settings.supabase_url or not self._settings.supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required")
        key = self._settings.supabase_key
        self._client = httpx.AsyncClient(
            base_url=self._settings.supabase_url.rstrip("/") + "/rest/v1",
            headers={"apikey": key, "Authorization": f"Bearer {key}", "Accept": "application/json"},
            timeout=10.0,
            transport=self._transport,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        if self._client is None:
            await self.connect()
        response = await self._client.get(f"/{table}", params=params)
        response.raise_for_status()
        data = response.json()
        return [row for row in data if isinstance(row, dict)] if isinstance(data, list) else []

    async def fetch_by_ids(self, ids: Iterable[str]) -> List[Dict[str, Any]]:
        """Purpose: Batch-fetch vendor rows by identifier.
        Inputs/Outputs: Input is an id iterable; output is rows in store order.
        Side Effects / State: One HTTP request.
        Dependencies: PostgREST `in` filter.
        Failure Modes: httpx.HTTPError propagates.
        If Removed: The first enrichment tier cannot run.
        Testing Notes: Empty input returns [] without a request.
        """
        unique = list(dict.fromkeys(str(value) for value in ids if value))
        if not unique:
            return []
        in_list = ",".join(_quote(value) for value in unique)
        return await self._select("vendors", {"select": VENDOR_COLUMNS, "id": f"in.({in_list})"})

    async def search_by_name(self, name: str, limit: int = 3) -> List[Dict[str, Any]]:
        """Partial, case-insensitive name match."""
        term = _like_term(name)
        if not term:
            return []
        return await self._select(
            "vendors",
            {"select": VENDOR_COLUMNS, "name": f"ilike.*{term}*", "limit": str(limit)},
        )

    async def search_vendors(
        self,
        category: Optional[str] = None,
        city: Optional[str] = None,
        is_veg: Optional[bool] = None,
        order: Optional[str] = None,
        limit: int = 6,
    ) -> List[Dict[str, Any]]:
        """Purpose: Filtered vendor listing used by relational-only search and guide buckets.
        Inputs/Outputs: Optional category/city/is_veg filters and an order clause; output is rows.
        Side Effects / State: One HTTP request.
        Dependencies: CATEGORY_ALIASES to widen category matches (caterer -> catering).
        Failure Modes: httpx.HTTPError propagates.
        If Removed: Guide mode and relational-only search have no data source.
        Testing Notes: order="max_price.desc" must appear with nullslast appended.
        """
        params: Dict[str, str] = {"select": VENDOR_COLUMNS, "limit": str(limit)}
        if category:
            aliases = CATEGORY_ALIASES.get(category, (category,))
            params["or"] = "(" + ",".join(f"category.ilike.*{_like_term(alias)}*" for alias in aliases) + ")"
        if city:
            params["city"] = f"ilike.*{_like_term(city)}*"
        if is_veg is not None:
            params["is_veg"] = f"eq.{str(is_veg).lower()}"
        if order:
            params["order"] = f"{order}.nullslast"
        return await self._select("vendors", params)

    async def get_vendor(self, vendor_id: str) -> Optional[Dict[str, Any]]:
        rows = await self._select(
            "vendors", {"select": VENDOR_COLUMNS, "id": f"eq.{vendor_id}", "limit": "1"}
        )
        return rows[0] if rows else None

    async def get_images(self, vendor_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        return await self._select(
            "vendor_images",
            {
                "select": "id,url,caption,is_main",
                "vendor_id": f"eq.{vendor_id}",
                "order": "is_main.desc,uploaded_at.desc",
                "limit": str(limit),
            },
        )

    async def get_offers(self, vendor_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        return await self._select(
            "vendor_offers",
            {
                "select": "id,title,description,price,currency,min_persons,max_persons",
                "vendor_id": f"eq.{vendor_id}",
                "order": "price.asc",
                "limit": str(limit),
            },
        )

    async def get_reviews(self, vendor_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        """Top reviews, highest rating first, then most recent."""
        return await self._select(
            "vendor_reviews",
            {
                "select": "id,reviewer_name,rating,title,body,review_date,source",
                "vendor_id": f"eq.{vendor_id}",
                "order": "rating.desc,review_ts.desc",
                "limit": str(limit),
            },
        )

    async def get_review_stats(self, vendor_id: str) -> Dict[str, Any]:
        rows = await self._select("vendor_reviews", {"select": "rating", "vendor_id": f"eq.{vendor_id}"})
        ratings = [float(row["rating"]) for row in rows if isinstance(row.get("rating"), (int, float))]
        average = round(sum(ratings) / len(ratings), 2) if ratings else None
        return {"review_count": len(rows), "avg_rating": average}
