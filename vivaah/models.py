from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """Chat message as sent by the UI; parts are kept loose so malformed entries survive."""
    id: Optional[str] = Field(default=None)
    role: str = "user"
    parts: List[Any] = Field(default_factory=list)


class SearchRequest(BaseModel):
    """Request payload for the direct vendor search API."""
    q: str = ""
    category: Optional[str] = None
    city: Optional[str] = None
    topK: int = 5


class ModerationResult(BaseModel):
    """Verdict returned by the moderation collaborator."""
    flagged: bool = False
    denial_message: Optional[str] = None
    categories: List[str] = Field(default_factory=list)


class WebResult(BaseModel):
    """Single snippet returned by the web-search collaborator."""
    title: str = ""
    url: str = ""
    content: str = ""


@dataclass
class CandidateRecord:
    """Identifier view over a normalized vector hit."""
    vendor_id: Optional[str]
    name: str
    score: Optional[float]

    @classmethod
    def from_hit(cls, hit: Dict[str, Any]) -> "CandidateRecord":
        metadata = hit.get("metadata") if isinstance(hit.get("metadata"), dict) else {}
        identifier = None
        for value in (
            hit.get("vendor_id"),
            hit.get("_id"),
            hit.get("id"),
            metadata.get("vendor_id"),
            metadata.get("id"),
        ):
            if value is not None and str(value).strip():
                identifier = str(value).strip()
                break
        return cls(
            vendor_id=identifier,
            name=str(hit.get("name") or "").strip(),
            score=hit.get("_score"),
        )
