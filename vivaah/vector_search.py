from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI
from pinecone import Pinecone

from .config import Settings

logger = logging.getLogger("vivaah.vector")


class VendorVectorSearch:
    """Embeds a query with OpenAI and ranks vendors in a Pinecone index."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Keep settings; SDK clients are created in connect().
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: None until connect().
        Dependencies: openai.AsyncOpenAI and pinecone.Pinecone.
        Failure Modes: None at init.
        If Removed: Vendor search loses semantic ranking and runs relational-only.
        Testing Notes: Replace with a fake exposing async search(query, top_k, filters).
        """
        self._settings = settings
        self._openai: Optional[AsyncOpenAI] = None
        self._index: Any = None

    async def connect(self) -> None:
        """Create the OpenAI and Pinecone clients; raises ValueError when keys are missing."""
        if not self._settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required")
        if not self._settings.pinecone_api_key:
            raise ValueError("PINECONE_API_KEY is required")
        self._openai = AsyncOpenAI(api_key=self._settings.openai_api_key)
        pinecone_client = Pinecone(api_key=self._settings.pinecone_api_key)
        self._index = pinecone_client.Index(self._settings.pinecone_index)

    async def aclose(self) -> None:
        if self._openai is not None:
            await self._openai.close()
            self._openai = None

    async def embed(self, text: str) -> List[float]:
        if self._openai is None:
            await self.connect()
        response = await self._openai.embeddings.create(model=self._settings.embedding_model, input=text)
        return list(response.data[0].embedding)

    async def search(
        self,
        query: str,
        top_k: Optional[int] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Purpose: Return raw vector matches for a free-text query.
        Inputs/Outputs: Inputs are query text, top_k, and equality filters; output is
            {"matches": [...]} as returned by Pinecone (plain dicts).
        Side Effects / State: One embedding call and one index query.
        Dependencies: OpenAI embeddings, Pinecone Index.query run in a worker thread.
        Failure Modes: SDK errors propagate; the resolver treats them as "no candidates".
        If Removed: Candidate ranking for vendor search disappears.
        Testing Notes: Empty query returns {"matches": []} without network calls.
        """
        if not query or not query.strip():
            return {"matches": []}
        vector = await self.embed(query)
        pinecone_filter = None
        if filters:
            pinecone_filter = {
                key: ({"$in": value} if isinstance(value, list) else {"$eq": value})
                for key, value in filters.items()
                if value is not None
            } or None
        # The Pinecone SDK is synchronous; keep the event loop free while it runs.
        response = await asyncio.to_thread(
            self._index.query,
            vector=vector,
            top_k=top_k or self._settings.vector_top_k,
            include_metadata=True,
            include_values=False,
            namespace=self._settings.pinecone_namespace or None,
            filter=pinecone_filter,
        )
        to_dict = getattr(response, "to_dict", None)
        result = to_dict() if callable(to_dict) else response
        logger.debug("Vector search returned %s matches", len((result or {}).get("matches") or []))
        return result
