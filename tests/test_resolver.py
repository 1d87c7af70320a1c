"""Tests for the enrichment tiers of the vendor resolver."""

import asyncio

from conftest import SAMPLE_VENDORS, FakeStore, FakeVector, FakeWeb
from vivaah.models import WebResult
from vivaah.resolver import VendorResolver, collect_ids, name_match_score


class CountingStore(FakeStore):
    """Store whose id lookup never matches, forcing the name tier."""

    async def fetch_by_ids(self, ids):
        self._check("fetch_by_ids")
        return []


def test_collect_ids_dedupes_in_rank_order():
    hits = [{"_id": "b"}, {"vendor_id": "a"}, {"id": "b"}, {"metadata": {"id": "c"}}]

    assert collect_ids(hits) == ["b", "a", "c"]


def test_enrich_prefers_id_tier():
    store = FakeStore(SAMPLE_VENDORS)
    resolver = VendorResolver(FakeVector(), store)

    rows, tier = asyncio.run(resolver.enrich([{"_id": "v2", "name": "Royal Feast Catering"}]))

    assert tier == "id"
    assert [row["id"] for row in rows] == ["v2"]
    assert "search_by_name" not in store.calls


def test_name_tier_is_bounded():
    """At most six names are looked up, sequentially, when ids find nothing."""

    store = CountingStore(SAMPLE_VENDORS)
    resolver = VendorResolver(FakeVector(), store)
    candidates = [{"_id": f"chunk-{i}", "name": f"Vendor {i}"} for i in range(10)]

    rows, tier = asyncio.run(resolver.enrich(candidates))

    assert rows == []
    assert tier == "none"
    assert store.calls.count("search_by_name") == 6


def test_search_falls_back_to_relational_listing():
    store = FakeStore(SAMPLE_VENDORS)
    resolver = VendorResolver(FakeVector(matches=[]), store)

    candidates, rows, tier = asyncio.run(resolver.search("caterers in Thane", category="caterer", city="Thane"))

    assert candidates == []
    assert tier == "relational"
    assert [row["id"] for row in rows] == ["v3"]


def test_vector_failure_counts_as_no_candidates():
    resolver = VendorResolver(FakeVector(error=RuntimeError("index down")), FakeStore([]))

    assert asyncio.run(resolver.vector_candidates("caterers")) == []


def test_resolve_single_rejects_unrelated_vector_hit():
    """A vector hit for another vendor is not treated as the requested one."""

    vector = FakeVector(matches=[{"id": "v1", "metadata": {"name": "Shree Caterers"}}])
    resolver = VendorResolver(vector, FakeStore(SAMPLE_VENDORS))

    assert asyncio.run(resolver.resolve_single("Sample Caterers")) is None
    assert asyncio.run(resolver.resolve_single("Shree Caterers"))["id"] == "v1"


def test_name_match_score_ignores_generic_words():
    assert name_match_score("Shree Caterers", "shree caterers") == 3
    assert name_match_score("Royal Feast Catering", "Royal Feast") == 2
    assert name_match_score("Royal Caterers", "Sample Caterers") == 0


def test_web_fallback_and_store_errors():
    web = FakeWeb([WebResult(title="Sample Caterers", url="https://example.com", content="Good food")])
    resolver = VendorResolver(FakeVector(), FakeStore(error=RuntimeError("db down")), web)

    assert len(asyncio.run(resolver.web_fallback("Sample Caterers reviews"))) == 1
    assert asyncio.run(resolver.vendor_reviews("v1")) == ([], {"review_count": 0, "avg_rating": None})


def test_guide_buckets_skip_regional_without_city():
    resolver = VendorResolver(FakeVector(), FakeStore(SAMPLE_VENDORS))

    buckets = asyncio.run(resolver.guide_buckets("caterer", None))

    assert set(buckets) == {"luxury", "veg", "regional", "budget"}
    assert buckets["regional"] == []
    assert [row["id"] for row in buckets["veg"]] == ["v1"]
