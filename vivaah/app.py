from __future__ import annotations

import json
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from .agent_pipeline import VendorChatAgent
from .config import Settings, load_settings
from .gemini_client import GeminiClient
from .messages import RequestPayloadError, normalize_request_payload
from .models import SearchRequest
from .moderation import ModerationChecker
from .streaming import STREAM_HEADERS, UIMessageStreamWriter, stream_segments
from .vector_search import VendorVectorSearch
from .vendor_store import SupabaseVendorStore
from .web_search import WebSearchClient

BASE_DIR = Path(__file__).resolve().parent

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("vivaah").setLevel(log_level)
logger = logging.getLogger("vivaah.app")

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)


def build_agent(settings: Settings) -> VendorChatAgent:
    """Purpose: Construct the orchestrator with its production collaborators.
    Inputs/Outputs: Input is Settings; output is an unconnected VendorChatAgent.
    Side Effects / State: None until connect() is awaited.
    Dependencies: GeminiClient, VendorVectorSearch, SupabaseVendorStore, ModerationChecker, WebSearchClient.
    Failure Modes: Missing credentials surface as ValueError from agent.connect().
    If Removed: The app has no way to wire collaborators.
    Testing Notes: Tests inject a fake agent into create_app instead.
    """
    # One instance per process; every request shares these clients.
    return VendorChatAgent(
        settings=settings,
        llm=GeminiClient(settings),
        vector=VendorVectorSearch(settings),
        store=SupabaseVendorStore(settings),
        moderation=ModerationChecker(settings),
        web=WebSearchClient(settings),
    )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(agent: Optional[Any] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Purpose: Build the FastAPI application around one orchestrator instance.
    Inputs/Outputs: Optional pre-built agent and settings; returns a FastAPI app.
    Side Effects / State: The lifespan connects collaborators at startup and closes them at shutdown.
    Dependencies: build_agent, stream_segments, normalize_request_payload.
    Failure Modes: Startup fails with ValueError when required credentials are missing.
    If Removed: No HTTP surface.
    Testing Notes: Pass a fake agent exposing handle(), lookup_vendors(), vendor_profile().
    """
    # Resolve settings lazily so tests can run without environment variables.
    state = {"agent": agent}

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if state["agent"] is None:
            state["agent"] = build_agent(settings or load_settings())
        current = state["agent"]
        connect = getattr(current, "connect", None)
        if connect is not None:
            await connect()
        logger.info("Vivaah assistant ready")
        try:
            yield
        finally:
            close = getattr(current, "aclose", None)
            if close is not None:
                await close()

    app = FastAPI(title="Vivaah Vendor Assistant", lifespan=lifespan)

    def _inline_payload() -> bool:
        current_settings = getattr(state["agent"], "settings", None)
        return bool(getattr(current_settings, "inline_payload", False))

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.post("/api/chat")
    async def chat(request: Request):
        """Purpose: Stream the assistant response for a chat history.
        Inputs/Outputs: JSON body {messages} or {message}; output is an SSE stream of UI segments.
        Side Effects / State: Runs the orchestrator as a task bound to this response.
        Dependencies: normalize_request_payload, UIMessageStreamWriter, stream_segments.
        Failure Modes: Malformed JSON or missing messages -> 400 {error}.
        If Removed: The chat UI has no backend.
        Testing Notes: Use TestClient with a fake agent and parse the data: lines.
        """
        # Validate the transport before any segment is produced.
        try:
            body = json.loads(await request.body() or b"null")
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error(400, "Malformed JSON body")
        try:
            messages = normalize_request_payload(body)
        except RequestPayloadError as exc:
            return _error(400, str(exc))

        writer = UIMessageStreamWriter(inline_payload=_inline_payload())
        current = state["agent"]

        async def execute(stream_writer: UIMessageStreamWriter) -> None:
            await current.handle(messages, stream_writer)

        return StreamingResponse(
            stream_segments(execute, writer),
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
        )

    @app.post("/api/search")
    async def search(payload: SearchRequest):
        """Direct vendor search: vector ranking with relational rows."""
        if not payload.q.strip():
            return _error(400, "Missing q")
        top_k = max(1, min(payload.topK, 50))
        return await state["agent"].lookup_vendors(payload.q, category=payload.category, city=payload.city, top_k=top_k)

    @app.get("/api/vendor/{vendor_id}")
    async def vendor(vendor_id: str):
        profile = await state["agent"].vendor_profile(vendor_id)
        if profile is None:
            return _error(404, "Vendor not found")
        return profile

    return app


app = create_app()
