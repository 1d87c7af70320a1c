"""Shared settings and in-memory collaborator fakes."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from vivaah.config import Settings
from vivaah.models import ChatMessage, ModerationResult, WebResult

PROMPTS_DIR = Path(__file__).resolve().parents[1] / "vivaah" / "prompts"


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = dict(
        gemini_api_key="test",
        gemini_model="gemini-test",
        openai_api_key="test",
        embedding_model="text-embedding-3-small",
        moderation_model="omni-moderation-latest",
        pinecone_api_key="test",
        pinecone_index="vendors",
        pinecone_namespace="",
        supabase_url="https://example.supabase.co",
        supabase_key="test",
        tavily_api_key="test",
        prompts_dir=PROMPTS_DIR,
        llm_narrative=False,
    )
    values.update(overrides)
    return Settings(**values)


def user(text: str, message_id: str = "u1") -> ChatMessage:
    return ChatMessage(id=message_id, role="user", parts=[{"type": "text", "text": text}])


class FakeVector:
    def __init__(self, matches: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.matches = matches or []
        self.error = error
        self.queries: List[str] = []

    async def search(self, query, top_k=None, filters=None):
        self.queries.append(query)
        if self.error:
            raise self.error
        return {"matches": list(self.matches)}


class FakeStore:
    def __init__(
        self,
        vendors: Optional[List[Dict[str, Any]]] = None,
        reviews: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        error: Optional[Exception] = None,
    ):
        self.vendors = vendors or []
        self.reviews = reviews or {}
        self.error = error
        self.calls: List[str] = []

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if self.error:
            raise self.error

    async def fetch_by_ids(self, ids):
        self._check("fetch_by_ids")
        wanted = set(ids)
        return [row for row in self.vendors if row.get("id") in wanted]

    async def search_by_name(self, name, limit=3):
        self._check("search_by_name")
        term = name.lower()
        return [row for row in self.vendors if term in row.get("name", "").lower()][:limit]

    async def search_vendors(self, category=None, city=None, is_veg=None, order=None, limit=6):
        self._check("search_vendors")
        rows = self.vendors
        if category:
            rows = [row for row in rows if category in (row.get("category") or "")]
        if city:
            rows = [row for row in rows if city.lower() in (row.get("city") or "").lower()]
        if is_veg is not None:
            rows = [row for row in rows if row.get("is_veg") is is_veg]
        return rows[:limit]

    async def get_vendor(self, vendor_id):
        self._check("get_vendor")
        return next((row for row in self.vendors if row.get("id") == vendor_id), None)

    async def get_images(self, vendor_id, limit=10):
        return []

    async def get_offers(self, vendor_id, limit=10):
        return []

    async def get_reviews(self, vendor_id, limit=5):
        self._check("get_reviews")
        return self.reviews.get(vendor_id, [])[:limit]

    async def get_review_stats(self, vendor_id):
        rows = self.reviews.get(vendor_id, [])
        ratings = [row["rating"] for row in rows if "rating" in row]
        return {"review_count": len(rows), "avg_rating": sum(ratings) / len(ratings) if ratings else None}


class FakeWeb:
    def __init__(self, results: Optional[List[WebResult]] = None):
        self.results = results or []
        self.queries: List[str] = []

    async def search(self, query, max_results=3):
        self.queries.append(query)
        return self.results[:max_results]


class FakeModeration:
    def __init__(self, flagged: bool = False, denial: Optional[str] = None, error: Optional[Exception] = None):
        self.flagged = flagged
        self.denial = denial
        self.error = error

    async def check(self, text):
        if self.error:
            raise self.error
        return ModerationResult(flagged=self.flagged, denial_message=self.denial)


class FakeLLM:
    def __init__(self, deltas: Optional[List[str]] = None, error: Optional[Exception] = None, text: str = ""):
        self.deltas = deltas if deltas is not None else ["Hello", " there"]
        self.error = error
        self.text = text
        self.contents: List[Any] = []
        self.system: Optional[str] = None

    async def stream_chat(self, contents, system_instruction=None, tools=None, max_steps=5):
        self.contents = contents
        self.system = system_instruction
        for delta in self.deltas:
            yield delta
        if self.error:
            raise self.error

    async def generate_text(self, prompt, system_instruction=None):
        if self.error:
            raise self.error
        return self.text


SAMPLE_VENDORS = [
    {
        "id": "v1",
        "name": "Shree Caterers",
        "category": "caterer",
        "city": "Mumbai",
        "min_price": 300000,
        "max_price": 600000,
        "avg_rating": 4.5,
        "short_description": "North Indian and Gujarati menus.",
        "is_veg": True,
    },
    {
        "id": "v2",
        "name": "Royal Feast Catering",
        "category": "caterer",
        "city": "Mumbai",
        "min_price": 800000,
        "max_price": 1200000,
        "avg_rating": 4.8,
        "short_description": "Premium multi-cuisine buffets.",
    },
    {
        "id": "v3",
        "name": "Spice Route Caterers",
        "category": "caterer",
        "city": "Thane",
        "min_price": 200000,
        "max_price": 450000,
        "avg_rating": 4.1,
    },
]


@pytest.fixture
def settings() -> Settings:
    return make_settings()
