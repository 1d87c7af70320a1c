"""Tests for vector response normalisation and row canonicalisation."""

from vivaah.normalizer import normalize_vector_results, normalize_vendor_row, to_card
from vivaah.ranking import passes_budget
from vivaah.utils import format_inr, to_number


class FakeQueryResponse:
    """Mimics SDK responses that expose to_dict()."""

    def __init__(self, payload):
        self._payload = payload

    def to_dict(self):
        return self._payload


def test_unknown_shapes_yield_empty_list():
    assert normalize_vector_results(None) == []
    assert normalize_vector_results({}) == []
    assert normalize_vector_results("nonsense") == []
    assert normalize_vector_results({"matches": "not a list"}) == []


def test_nested_matches_and_metadata_are_flattened():
    response = {
        "data": {
            "matches": [
                {"id": "v1", "score": 0.91, "metadata": {"name": "Shree Caterers", "city": "Mumbai", "price_range": "40,000 - 60,000"}},
                {"id": "v2", "score": 0.80, "metadata": {"title": "Royal Feast", "price": "₹90,000"}},
            ]
        }
    }

    records = normalize_vector_results(response)

    assert [record["_id"] for record in records] == ["v1", "v2"]
    assert records[0]["name"] == "Shree Caterers"
    assert (records[0]["price_min"], records[0]["price_max"]) == (40000.0, 60000.0)
    assert records[0]["_score"] == 0.91
    # A single price is a lower bound only.
    assert (records[1]["price_min"], records[1]["price_max"]) == (90000.0, None)


def test_sdk_objects_and_broken_hits():
    """to_dict() responses are unwrapped and hits without identity are dropped."""

    response = FakeQueryResponse({"matches": [{"id": "v1", "metadata": {"name": "A"}}, {"metadata": {}}, 7]})

    records = normalize_vector_results(response)

    assert len(records) == 1
    assert records[0]["_id"] == "v1"


def test_vendor_id_in_metadata_wins():
    records = normalize_vector_results([{"id": "chunk-9", "metadata": {"vendor_id": "v7", "name": "X"}}])

    assert records[0]["_id"] == "v7"


def test_normalize_vendor_row_maps_synonyms():
    row = {"id": "v1", "name": "Shree", "min_price": "40000", "avg_rating": 4.4, "phone": "98200", "email": "a@b.in"}

    record = normalize_vendor_row(row)

    assert record["price_min"] == 40000.0
    assert record["rating"] == 4.4
    assert record["contact"] == "98200 | a@b.in"
    assert to_card(record)["images"] == []


def test_number_helpers():
    assert to_number("₹40,000") == 40000.0
    assert to_number(True) is None
    assert to_number("abc") is None
    assert format_inr(150000) == "₹1,50,000"
    assert format_inr(999) == "₹999"


def test_currency_prefixed_prices_keep_their_value():
    """A dot in "Rs." is not a decimal point."""

    assert to_number("Rs. 40,000") == 40000.0
    records = normalize_vector_results([{"id": "v1", "metadata": {"name": "A", "price_min": "Rs. 40,000", "price_max": "Rs. 60,000"}}])

    assert (records[0]["price_min"], records[0]["price_max"]) == (40000.0, 60000.0)
    assert passes_budget(records[0], 50000)


def test_price_ranges_with_currency_and_lakh_units():
    def bounds(price_range):
        record = normalize_vendor_row({"id": "v1", "name": "A", "price_range": price_range})
        return record["price_min"], record["price_max"]

    assert bounds("₹40,000 - ₹60,000") == (40000.0, 60000.0)
    assert bounds("Rs. 1.5L to Rs. 3L") == (150000.0, 300000.0)
    assert bounds("4 - 6 lakh") == (400000.0, 600000.0)
    assert normalize_vendor_row({"id": "v1", "min_price": "2.5 lakhs"})["price_min"] == 250000.0
