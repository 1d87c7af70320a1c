"""Human-readable prose and structured payloads for vendor responses.

Every payload is built only from fields present on relational rows or vector
metadata; nothing is filled in when a field is missing.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from .models import WebResult
from .normalizer import normalize_vendor_row, to_card
from .utils import format_inr, has_value, to_number

DESCRIPTOR_LIMIT = 160

CATEGORY_LABELS = {
    "caterer": "caterers",
    "decorator": "decorators",
    "venue": "venues",
    "photographer": "photographers",
    "dj": "DJs",
    "makeup": "makeup artists",
}

GUIDE_BUCKETS = [
    ("luxury", "Luxury picks"),
    ("veg", "Top pure-veg options"),
    ("regional", "Popular nearby"),
    ("budget", "Budget-friendly"),
]


def _one_line(text: Any, limit: int = DESCRIPTOR_LIMIT) -> str:
    if not has_value(text):
        return ""
    flat = " ".join(str(text).split())
    if len(flat) <= limit:
        return flat
    return flat[: limit - 1].rstrip() + "…"


def price_summary(record: Dict[str, Any]) -> str:
    low = format_inr(record.get("price_min"))
    high = format_inr(record.get("price_max"))
    if low and high and low != high:
        return f"{low} - {high}"
    if low:
        return f"from {low}"
    if high:
        return f"up to {high}"
    return ""


def rating_summary(record: Dict[str, Any]) -> str:
    rating = to_number(record.get("rating"))
    if rating is None:
        return ""
    count = to_number(record.get("rating_count"))
    suffix = f" ({int(count)} reviews)" if count else ""
    return f"{rating:.1f}/5{suffix}"


def _summary_line(record: Dict[str, Any]) -> str:
    pieces = []
    price = price_summary(record)
    if price:
        pieces.append(f"Price: {price}")
    rating = rating_summary(record)
    if rating:
        pieces.append(f"Rating: {rating}")
    if record.get("is_veg") is True:
        pieces.append("Pure veg")
    return " · ".join(pieces)


def render_shortlist(query: str, records: Sequence[Dict[str, Any]]) -> str:
    """Purpose: Render the shortlist as numbered paragraphs with intro and call to action.
    Inputs/Outputs: Inputs are the user query and shortlisted records; output is markdown text.
    Side Effects / State: None.
    Dependencies: price_summary, rating_summary.
    Failure Modes: None; missing fields are skipped, never invented.
    If Removed: Search responses carry data but no readable answer.
    Testing Notes: Paragraph order must match the payload order.
    """
    lines = [f'Here are some vendors that match "{query.strip()}":', ""]
    for index, record in enumerate(records, start=1):
        name = record.get("name") or "Unnamed vendor"
        where = ", ".join(str(value) for value in (record.get("category"), record.get("city")) if has_value(value))
        heading = f"{index}. **{name}**" + (f" ({where})" if where else "")
        lines.append(heading)
        descriptor = _one_line(record.get("short_description") or record.get("description"))
        if descriptor:
            lines.append(f"   {descriptor}")
        summary = _summary_line(record)
        if summary:
            lines.append(f"   {summary}")
        lines.append("")
    first = records[0].get("name") if records else "a vendor"
    lines.append(
        f'Want to know more? Ask for "more details on {first}" or "reviews for {first}".'
    )
    return "\n".join(lines).strip()


def vendor_cards(records: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Structured card payload in the same order as the prose."""
    return [to_card(record) for record in records]


def render_not_found(category: Optional[str], city: Optional[str]) -> str:
    label = CATEGORY_LABELS.get(category or "", "vendors")
    where = f" in {city}" if city else ""
    return (
        f"I couldn't find matching {label}{where} in our vendor database right now. "
        "Could you tell me a little more, like the area, your budget, or the kind of vendor you need?"
    )


def build_detail_payload(
    vendor: Dict[str, Any],
    images: Sequence[Dict[str, Any]] = (),
    offers: Sequence[Dict[str, Any]] = (),
    reviews: Sequence[Dict[str, Any]] = (),
    stats: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Purpose: Assemble the vendor_details payload from relational facts.
    Inputs/Outputs: Inputs are the vendor row and related rows; output is a plain dict.
    Side Effects / State: None.
    Dependencies: normalize_vendor_row, to_card.
    Failure Modes: None; empty related lists stay empty.
    If Removed: The details flow has no structured output.
    Testing Notes: Image URLs are copied into card images when the row has none.
    """
    record = normalize_vendor_row(vendor)
    if not record.get("images"):
        record["images"] = [image.get("url") for image in images if has_value(image.get("url"))]
    payload = to_card(record)
    payload.update(
        {
            "long_description": record.get("long_description"),
            "address": record.get("address"),
            "capacity": record.get("capacity"),
            "rating_count": record.get("rating_count"),
            "offers": [dict(offer) for offer in offers],
            "top_reviews": [dict(review) for review in reviews],
            "stats": dict(stats or {}),
        }
    )
    return payload


def render_detail(payload: Dict[str, Any]) -> str:
    lines = [f"**{payload.get('name') or 'Vendor details'}**"]
    where = ", ".join(str(value) for value in (payload.get("category"), payload.get("city")) if has_value(value))
    if where:
        lines.append(where)
    description = payload.get("long_description") or payload.get("short_description")
    if has_value(description):
        lines.extend(["", str(description).strip()])
    facts = []
    price = price_summary(payload)
    if price:
        facts.append(f"- Price: {price}")
    if has_value(payload.get("capacity")):
        facts.append(f"- Capacity: {payload['capacity']}")
    rating = rating_summary(payload)
    if rating:
        facts.append(f"- Rating: {rating}")
    if payload.get("is_veg") is True:
        facts.append("- Pure veg")
    if has_value(payload.get("address")):
        facts.append(f"- Address: {payload['address']}")
    if has_value(payload.get("contact")):
        facts.append(f"- Contact: {payload['contact']}")
    if facts:
        lines.extend([""] + facts)
    offers = payload.get("offers") or []
    if offers:
        lines.extend(["", "Packages:"])
        for offer in offers[:3]:
            price = format_inr(offer.get("price"))
            title = offer.get("title") or "Package"
            lines.append(f"- {title}" + (f": {price}" if price else ""))
    lines.extend(["", f'Ask for "reviews for {payload.get("name")}" to see what couples say.'])
    return "\n".join(lines).strip()


def build_reviews_payload(
    vendor: Dict[str, Any],
    reviews: Sequence[Dict[str, Any]],
    stats: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    record = normalize_vendor_row(vendor)
    return {
        "vendor": {"id": record.get("id"), "name": record.get("name"), "rating": record.get("rating")},
        "reviews": [dict(review) for review in reviews],
        "stats": dict(stats or {}),
    }


def render_reviews(payload: Dict[str, Any]) -> str:
    vendor = payload.get("vendor") or {}
    name = vendor.get("name") or "this vendor"
    stats = payload.get("stats") or {}
    reviews = payload.get("reviews") or []
    average = to_number(stats.get("avg_rating")) or to_number(vendor.get("rating"))
    lines = [f"**Reviews for {name}**"]
    if average is not None:
        count = stats.get("review_count")
        lines.append(f"Average rating: {average:.1f}/5" + (f" from {count} reviews" if count else ""))
    if not reviews:
        lines.extend(["", f"We don't have any written reviews for {name} yet."])
        return "\n".join(lines)
    lines.append("")
    for review in reviews:
        rating = to_number(review.get("rating"))
        title = review.get("title") or ""
        head = " ".join(part for part in (f"{rating:.0f}★" if rating is not None else "", title) if part)
        who = review.get("reviewer_name") or "A customer"
        body = _one_line(review.get("body"), 240)
        lines.append(f"- {head} ({who})" if head else f"- {who}")
        if body:
            lines.append(f"  {body}")
    return "\n".join(lines).strip()


def build_guide_payload(
    category: Optional[str],
    city: Optional[str],
    buckets: Dict[str, Sequence[Dict[str, Any]]],
) -> Dict[str, Any]:
    return {
        "category": category,
        "city": city,
        "buckets": {
            key: [to_card(normalize_vendor_row(row)) for row in buckets.get(key) or []]
            for key, _ in GUIDE_BUCKETS
        },
    }


def render_guide(payload: Dict[str, Any]) -> str:
    label = CATEGORY_LABELS.get(payload.get("category") or "", "vendors")
    where = f" in {payload['city']}" if payload.get("city") else ""
    lines = [f"Here's a quick guide to {label}{where}:"]
    for key, title in GUIDE_BUCKETS:
        items = (payload.get("buckets") or {}).get(key) or []
        if not items:
            continue
        lines.extend(["", f"**{title}**"])
        for item in items:
            summary = _summary_line(item)
            lines.append(f"- {item.get('name')}" + (f": {summary}" if summary else ""))
    lines.extend(["", 'Ask for "more details on <vendor>" about any of these.'])
    return "\n".join(lines).strip()


def guide_is_empty(payload: Dict[str, Any]) -> bool:
    return not any((payload.get("buckets") or {}).values())


def render_web_fallback(name: str, results: Sequence[WebResult], kind: str = "details") -> str:
    """Purpose: Present web snippets when internal data has nothing on a vendor.
    Inputs/Outputs: Inputs are the vendor name, web results, and flow kind; output is text.
    Side Effects / State: None.
    Dependencies: WebResult model.
    Failure Modes: None.
    If Removed: Unknown vendors end with a bare "not found".
    Testing Notes: Output must state the information is not from our database.
    """
    subject = "reviews" if kind == "reviews" else "information"
    lines = [
        f"I couldn't find {name} in our vendor database, so here is {subject} from the web "
        "(not verified by us):",
        "",
    ]
    for result in results:
        snippet = _one_line(result.content, 240)
        lines.append(f"- [{result.title or result.url}]({result.url})" if result.url else f"- {result.title}")
        if snippet:
            lines.append(f"  {snippet}")
    return "\n".join(lines).strip()


def render_vendor_missing(name: str) -> str:
    return (
        f"I couldn't find {name} in our vendor database or on the web. "
        "Could you check the spelling or share the area they are based in?"
    )


def facts_prompt(template: str, kind: str, query: str, payload: Dict[str, Any]) -> str:
    """Fill the fact-bound narrative prompt with the user query and payload JSON."""
    facts = json.dumps(payload, ensure_ascii=False, indent=2, default=str)
    return template.replace("{kind}", kind).replace("{query}", query).replace("{facts}", facts)
