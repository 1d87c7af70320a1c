"""Tests for vendor routing predicates and parameter parsing."""

from vivaah.intents import (
    INTENT_DETAILS,
    INTENT_GUIDE,
    INTENT_REVIEWS,
    INTENT_SEARCH,
    classify_vendor_intent,
    extract_vendor_name,
    is_guide_query,
    is_vendor_query,
)
from vivaah.params import infer_category, parse_budget, parse_category, parse_locality


def test_vendor_query_detects_keywords_and_cities():
    assert is_vendor_query("caterers in Bombay")
    assert is_vendor_query("Any good DJ for sangeet?")
    assert is_vendor_query("what is there to do in mumbai")


def test_vendor_query_ignores_general_chat():
    """Keywords match whole words, so "adjust" and "django" do not look like DJ requests."""

    assert not is_vendor_query("how do I adjust my budget spreadsheet")
    assert not is_vendor_query("deploying a django app")
    assert not is_vendor_query("learning the djembe")
    assert is_vendor_query("two DJs for the sangeet")
    assert not is_vendor_query("")
    assert not is_vendor_query(None)


def test_intent_precedence():
    """guide > details > reviews > search."""

    assert classify_vendor_intent("tell me more about the best caterers") == INTENT_GUIDE
    assert classify_vendor_intent("more details on Shree Caterers reviews") == INTENT_DETAILS
    assert classify_vendor_intent("reviews for Shree Caterers") == INTENT_REVIEWS
    assert classify_vendor_intent("caterers in Mumbai") == INTENT_SEARCH


def test_budget_turns_guide_wording_into_search():
    assert not is_guide_query("best caterers in Mumbai under 5 lakh")
    assert classify_vendor_intent("best caterers in Mumbai under 5 lakh") == INTENT_SEARCH


def test_extract_vendor_name():
    assert extract_vendor_name("More details on Shree Caterers?", INTENT_DETAILS) == "Shree Caterers"
    assert extract_vendor_name("reviews for the Royal Feast", INTENT_REVIEWS) == "Royal Feast"
    assert extract_vendor_name("reviews", INTENT_REVIEWS) is None


def test_parse_budget_units():
    assert parse_budget("caterers under 5 lakh") == 500000
    assert parse_budget("budget 2.5 lakhs") == 250000
    assert parse_budget("around ₹50,000") == 50000
    assert parse_budget("rs 75000 max") == 75000
    assert parse_budget("hello") is None


def test_parse_budget_ignores_small_bare_numbers():
    """Counts like "top 5" are not budgets."""

    assert parse_budget("top 5 caterers") is None
    assert parse_budget("top 5 caterers for 200 guests within 300000") == 300000


def test_parse_category_and_synonyms():
    assert parse_category("Looking for caterers in Mumbai") == "caterer"
    assert parse_category("wedding planners") is None
    assert infer_category("catering for 300 guests") == "caterer"
    assert infer_category("photography packages") == "photographer"


def test_parse_locality():
    assert parse_locality("venues in navi mumbai") == "Navi Mumbai"
    assert parse_locality("decorators in Bombay") == "Mumbai"
    assert parse_locality("decorators near me") is None
