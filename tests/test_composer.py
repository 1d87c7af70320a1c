"""Tests for rendered prose and structured payloads."""

from vivaah.composer import (
    build_detail_payload,
    build_guide_payload,
    build_reviews_payload,
    facts_prompt,
    guide_is_empty,
    render_detail,
    render_not_found,
    render_reviews,
    render_shortlist,
    render_web_fallback,
    vendor_cards,
)
from vivaah.models import WebResult
from vivaah.normalizer import normalize_vendor_row


def _records():
    return [
        normalize_vendor_row({"id": "v1", "name": "Shree Caterers", "city": "Mumbai", "min_price": 300000, "max_price": 600000}),
        normalize_vendor_row({"id": "v2", "name": "Royal Feast", "avg_rating": 4.8, "rating_count": 12}),
    ]


def test_shortlist_prose_matches_card_order():
    records = _records()

    text = render_shortlist("caterers in Mumbai", records)
    cards = vendor_cards(records)

    assert text.index("1. **Shree Caterers**") < text.index("2. **Royal Feast**")
    assert "₹3,00,000 - ₹6,00,000" in text
    assert "4.8/5 (12 reviews)" in text
    assert "more details on Shree Caterers" in text
    assert [card["id"] for card in cards] == ["v1", "v2"]


def test_missing_fields_are_not_invented():
    text = render_shortlist("anything", [normalize_vendor_row({"id": "v9", "name": "Bare Vendor"})])

    assert "Price" not in text
    assert "Rating" not in text


def test_not_found_mentions_category_and_city():
    assert "caterers in Mumbai" in render_not_found("caterer", "Mumbai")
    assert "vendors" in render_not_found(None, None)


def test_detail_payload_uses_related_rows():
    payload = build_detail_payload(
        {"id": "v1", "name": "Shree Caterers", "capacity": 500},
        images=[{"url": "https://img/1.jpg"}, {"url": ""}],
        offers=[{"title": "Gold menu", "price": 1200}],
        reviews=[{"rating": 5, "body": "Lovely"}],
        stats={"review_count": 1, "avg_rating": 5.0},
    )

    assert payload["images"] == ["https://img/1.jpg"]
    assert payload["offers"][0]["title"] == "Gold menu"
    text = render_detail(payload)
    assert "Capacity: 500" in text
    assert "Gold menu: ₹1,200" in text


def test_reviews_rendering_without_reviews():
    payload = build_reviews_payload({"id": "v1", "name": "Shree Caterers"}, [], {})

    assert "don't have any written reviews" in render_reviews(payload)


def test_guide_payload_buckets():
    empty = build_guide_payload("caterer", None, {})
    assert guide_is_empty(empty)
    filled = build_guide_payload("caterer", "Mumbai", {"luxury": [{"id": "v2", "name": "Royal Feast"}]})
    assert not guide_is_empty(filled)
    assert filled["buckets"]["luxury"][0]["id"] == "v2"
    assert filled["buckets"]["veg"] == []


def test_web_fallback_is_marked_as_external():
    results = [WebResult(title="Sample Caterers - Reviews", url="https://example.com/s", content="Great biryani")]

    text = render_web_fallback("Sample Caterers", results, kind="reviews")

    assert "not verified by us" in text
    assert "https://example.com/s" in text


def test_facts_prompt_fills_placeholders():
    prompt = facts_prompt("{kind}|{query}|{facts}", "vendor details", "tell me", {"name": "X"})

    assert prompt.startswith("vendor details|tell me|")
    assert '"name": "X"' in prompt
