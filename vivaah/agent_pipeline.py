"""Vivaah chat orchestration: moderation, intent routing, and streamed responses.

Role:
    Owns the ChatContext contract and every routing decision for a chat request.
    Collaborators (LLM, vector search, vendor store, moderation, web search) are
    injected once per process; nothing here keeps state between requests.

States:
    received -> moderated -> {general | vendor:{guide|details|reviews|search}}
    -> streaming -> done

Step contracts:
    Moderation:
        Reads user_text; a flagged verdict writes the denial text and halts.
        A failing checker is treated as "not flagged".
    Intent Detection:
        Sets route (general/vendor) and intent (guide/details/reviews/search).
    Respond:
        Runs exactly one sub-flow. Vendor sub-flow errors become an apology
        fragment; the stream is always finished by handle().
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .composer import (
    build_detail_payload,
    build_guide_payload,
    build_reviews_payload,
    facts_prompt,
    guide_is_empty,
    render_detail,
    render_guide,
    render_not_found,
    render_reviews,
    render_shortlist,
    render_vendor_missing,
    render_web_fallback,
    vendor_cards,
)
from .config import Settings
from .intents import (
    INTENT_DETAILS,
    INTENT_GUIDE,
    INTENT_REVIEWS,
    INTENT_SEARCH,
    classify_vendor_intent,
    extract_vendor_name,
    is_vendor_query,
)
from .messages import get_latest_user_text, to_llm_contents
from .models import ChatMessage
from .moderation import DEFAULT_DENIAL_MESSAGE
from .normalizer import normalize_vector_results
from .params import infer_category, parse_budget, parse_locality
from .pipeline_runtime import PipelineRunner, PipelineStep
from .prompt_loader import SYSTEM_PROMPT, VENDOR_FACTS_PROMPT, load_named_prompt
from .ranking import merge_hits, narrow_by_category, shortlist
from .resolver import VendorResolver, collect_ids
from .streaming import UIMessageStreamWriter

logger = logging.getLogger("vivaah.agent")

ROUTE_GENERAL = "general"
ROUTE_VENDOR = "vendor"

GENERAL_APOLOGY = "Sorry, I couldn't generate an answer right now. Please try again in a moment."
VENDOR_APOLOGY = "Sorry, something went wrong while looking up vendors. Please try again in a moment."
ASK_VENDOR_NAME_REPLY = "Which vendor would you like {what} for? Please share the vendor's name."
ASK_GUIDE_CATEGORY_REPLY = (
    "Happy to help! Which kind of vendor are you looking for: caterers, decorators, venues, "
    "photographers, DJs, or makeup artists?"
)


@dataclass
class ChatContext:
    """Mutable context passed through each pipeline step."""
    messages: List[ChatMessage]
    writer: UIMessageStreamWriter
    user_text: Optional[str] = None
    state: str = "received"
    route: str = ""
    intent: str = ""
    budget: Optional[float] = None
    category: Optional[str] = None
    city: Optional[str] = None
    halted: bool = False
    thinking_logs: List[Dict[str, str]] = field(default_factory=list)

    def log(self, event: str, detail: str, status: str = "success") -> None:
        """Record a step entry and mirror it to the module logger."""
        self.thinking_logs.append({"event": event, "detail": detail, "status": status})
        logger.info("[%s] %s: %s", status, event, detail)


class VendorChatAgent:
    """Per-process orchestrator; handle() serves one request against a fresh writer."""

    def __init__(
        self,
        settings: Settings,
        llm: Any,
        vector: Any,
        store: Any,
        moderation: Any = None,
        web: Any = None,
    ) -> None:
        """Purpose: Wire collaborators, prompts, and the step runner.
        Inputs/Outputs: Inputs are Settings and collaborator objects; no return value.
        Side Effects / State: Reads prompt files from settings.prompts_dir.
        Dependencies: VendorResolver, PipelineRunner, prompt_loader.
        Failure Modes: Missing prompt files raise FileNotFoundError.
        If Removed: The chat route has nothing to run.
        Testing Notes: Inject fakes for every collaborator; none of them need connect().
        """
        self.settings = settings
        self.llm = llm
        self.vector = vector
        self.store = store
        self.moderation = moderation
        self.web = web
        self.resolver = VendorResolver(
            vector,
            store,
            web,
            top_k=settings.vector_top_k,
            name_fallback_limit=settings.name_fallback_limit,
            rows_per_name=settings.rows_per_name,
            web_results=settings.web_results,
        )
        prompts_dir = Path(settings.prompts_dir)
        self._system_prompt = load_named_prompt(prompts_dir, SYSTEM_PROMPT)
        self._facts_prompt = load_named_prompt(prompts_dir, VENDOR_FACTS_PROMPT)
        self._runner = PipelineRunner(
            [
                PipelineStep("Moderation", self._step_moderation),
                PipelineStep("Intent Detection", self._step_intent),
                PipelineStep("Respond", self._step_respond),
            ]
        )

    def _collaborators(self) -> List[Any]:
        return [c for c in (self.llm, self.vector, self.store, self.moderation, self.web) if c is not None]

    async def connect(self) -> None:
        """Initialise every collaborator that exposes connect()."""
        for collaborator in self._collaborators():
            connect = getattr(collaborator, "connect", None)
            if connect is not None:
                await connect()

    async def aclose(self) -> None:
        for collaborator in self._collaborators():
            close = getattr(collaborator, "aclose", None)
            if close is not None:
                await close()

    async def handle(self, messages: List[ChatMessage], writer: UIMessageStreamWriter) -> ChatContext:
        """Purpose: Serve one chat request end to end.
        Inputs/Outputs: Inputs are the full message history and a fresh writer; returns the context.
        Side Effects / State: Writes start ... finish segments to writer.
        Dependencies: PipelineRunner steps below.
        Failure Modes: Unexpected errors become an apology; the stream is always finished.
        If Removed: No chat responses.
        Testing Notes: Every scenario must end with a finish segment.
        """
        context = ChatContext(messages=list(messages), writer=writer)
        started = time.perf_counter()
        writer.start()
        try:
            await self._runner.run(context)
        except asyncio.CancelledError:
            context.log("Request", "cancelled by client", status="cancelled")
            raise
        except Exception:  # noqa: BLE001 - the stream must terminate cleanly
            logger.exception("Chat pipeline failed")
            writer.end_text()
            writer.write_text(VENDOR_APOLOGY if context.route == ROUTE_VENDOR else GENERAL_APOLOGY)
        finally:
            context.state = "done"
            writer.finish()
        context.log("Request", f"done in {time.perf_counter() - started:.2f}s ({context.route or 'halted'})")
        return context

    # ------------------------------------------------------------------ steps

    async def _step_moderation(self, context: ChatContext) -> None:
        context.user_text = get_latest_user_text(context.messages)
        context.state = "moderated"
        if not context.user_text or self.moderation is None:
            return
        try:
            verdict = await self.moderation.check(context.user_text)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - moderation fails open
            context.log("Moderation", f"checker failed, continuing unflagged: {exc}", status="warning")
            return
        if verdict.flagged:
            context.log("Moderation", "message flagged", status="blocked")
            context.writer.write_text(verdict.denial_message or DEFAULT_DENIAL_MESSAGE)
            context.halted = True
            return
        context.log("Moderation", "passed")

    async def _step_intent(self, context: ChatContext) -> None:
        text = context.user_text
        if not is_vendor_query(text):
            context.route = ROUTE_GENERAL
            context.log("Intent Detection", "general")
            return
        context.route = ROUTE_VENDOR
        context.intent = classify_vendor_intent(text)
        context.budget = parse_budget(text)
        context.category = infer_category(text)
        context.city = parse_locality(text)
        context.log(
            "Intent Detection",
            f"vendor:{context.intent} budget={context.budget} category={context.category} city={context.city}",
        )

    async def _step_respond(self, context: ChatContext) -> None:
        context.state = "streaming"
        if context.route == ROUTE_GENERAL:
            await self._respond_general(context)
            return
        flows = {
            INTENT_GUIDE: self._respond_guide,
            INTENT_DETAILS: self._respond_details,
            INTENT_REVIEWS: self._respond_reviews,
            INTENT_SEARCH: self._respond_search,
        }
        flow = flows.get(context.intent, self._respond_search)
        try:
            await flow(context)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001 - sub-flow boundary
            logger.exception("Vendor sub-flow %s failed", context.intent)
            context.log("Respond", f"vendor:{context.intent} failed", status="error")
            context.writer.end_text()
            context.writer.write_text(VENDOR_APOLOGY)

    # ------------------------------------------------------------ sub-flows

    async def _web_search_tool(self, args: Dict[str, Any]) -> List[Dict[str, str]]:
        results = await self.resolver.web_fallback(str(args.get("query") or ""))
        return [result.dict() for result in results]

    async def _respond_general(self, context: ChatContext) -> None:
        """Stream the general LLM answer for the full history."""
        writer = context.writer
        contents, extra_system = to_llm_contents(context.messages)
        system = self._system_prompt + (f"\n\n{extra_system}" if extra_system else "")
        tools = {"web_search": self._web_search_tool} if self.web is not None else None
        wrote = False
        try:
            async for delta in self.llm.stream_chat(
                contents,
                system_instruction=system,
                tools=tools,
                max_steps=self.settings.max_tool_steps,
            ):
                if delta:
                    writer.text_delta(delta)
                    wrote = True
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001 - LLM failure produces the fixed apology
            logger.exception("General LLM stream failed")
            context.log("Respond", "general LLM failed", status="error")
            writer.text_delta(("\n\n" if wrote else "") + GENERAL_APOLOGY)
            wrote = True
        if not wrote:
            writer.text_delta(GENERAL_APOLOGY)
        writer.end_text()
        context.log("Respond", "general answer streamed")

    async def _narrate(self, kind: str, query: str, payload: Dict[str, Any], fallback: str) -> str:
        # Optional LLM rewrite bound to the payload facts; template text otherwise.
        if self.llm is None or not self.settings.llm_narrative:
            return fallback
        try:
            text = await self.llm.generate_text(facts_prompt(self._facts_prompt, kind, query, payload))
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning("Narrative generation failed for %s: %s", kind, exc)
            return fallback
        return text or fallback

    async def _respond_search(self, context: ChatContext) -> None:
        query = context.user_text or ""
        candidates, rows, tier = await self.resolver.search(query, context.category, context.city)
        merged = narrow_by_category(merge_hits(candidates, rows), context.category)
        picks = shortlist(merged, context.budget, size=self.settings.shortlist_size)
        context.log(
            "Respond",
            f"search candidates={len(candidates)} rows={len(rows)} tier={tier} merged={len(merged)} shortlist={len(picks)}",
        )
        if not picks:
            context.writer.write_text(render_not_found(context.category, context.city))
            return
        context.writer.write_text(render_shortlist(query, picks))
        context.writer.tool_result("vendor_hits", vendor_cards(picks))

    async def _respond_guide(self, context: ChatContext) -> None:
        if not context.category:
            context.writer.write_text(ASK_GUIDE_CATEGORY_REPLY)
            return
        buckets = await self.resolver.guide_buckets(context.category, context.city)
        payload = build_guide_payload(context.category, context.city, buckets)
        context.log("Respond", "guide buckets " + ", ".join(f"{k}={len(v)}" for k, v in buckets.items()))
        if guide_is_empty(payload):
            context.writer.write_text(render_not_found(context.category, context.city))
            return
        text = await self._narrate("vendor guide", context.user_text or "", payload, render_guide(payload))
        context.writer.write_text(text)
        context.writer.tool_result("guide", payload)

    async def _respond_web_or_missing(self, context: ChatContext, name: str, kind: str) -> None:
        suffix = "reviews" if kind == "reviews" else "wedding vendor"
        results = await self.resolver.web_fallback(f"{name} {suffix} {context.city or 'Mumbai'}")
        context.log("Respond", f"{kind}: '{name}' not in store, web results={len(results)}", status="fallback")
        if results:
            context.writer.write_text(render_web_fallback(name, results, kind=kind))
        else:
            context.writer.write_text(render_vendor_missing(name))

    async def _respond_details(self, context: ChatContext) -> None:
        name = extract_vendor_name(context.user_text, INTENT_DETAILS)
        if not name:
            context.writer.write_text(ASK_VENDOR_NAME_REPLY.format(what="more details"))
            return
        vendor = await self.resolver.resolve_single(name)
        if vendor is None:
            await self._respond_web_or_missing(context, name, "details")
            return
        related = await self.resolver.vendor_details(str(vendor.get("id")))
        payload = build_detail_payload(vendor, **related)
        context.log("Respond", f"details for {payload.get('name')} ({payload.get('id')})")
        text = await self._narrate("vendor details", context.user_text or "", payload, render_detail(payload))
        context.writer.write_text(text)
        context.writer.tool_result("vendor_details", payload)

    async def _respond_reviews(self, context: ChatContext) -> None:
        name = extract_vendor_name(context.user_text, INTENT_REVIEWS)
        if not name:
            context.writer.write_text(ASK_VENDOR_NAME_REPLY.format(what="reviews"))
            return
        vendor = await self.resolver.resolve_single(name)
        if vendor is None:
            await self._respond_web_or_missing(context, name, "reviews")
            return
        reviews, stats = await self.resolver.vendor_reviews(str(vendor.get("id")))
        payload = build_reviews_payload(vendor, reviews, stats)
        context.log("Respond", f"reviews for {vendor.get('name')}: {len(reviews)}")
        text = await self._narrate("vendor reviews", context.user_text or "", payload, render_reviews(payload))
        context.writer.write_text(text)
        context.writer.tool_result("vendor_reviews", payload)

    # ------------------------------------------------------------ JSON routes

    async def lookup_vendors(
        self,
        query: str,
        category: Optional[str] = None,
        city: Optional[str] = None,
        top_k: int = 5,
    ) -> Dict[str, Any]:
        """Purpose: Direct vector search + relational fetch for the search API.
        Inputs/Outputs: Inputs are query text, optional metadata filters, top_k; output is
            {"results": rows in vector order, "matches": normalized hits}.
        Side Effects / State: One vector query and at most one store query.
        Dependencies: vector.search, normalize_vector_results, store.fetch_by_ids.
        Failure Modes: Collaborator errors propagate (the route answers 500).
        If Removed: /api/search is unavailable.
        Testing Notes: Rows are reordered to match vector ranking; unknown ids are dropped.
        """
        response = await self.vector.search(query, top_k=top_k, filters={"category": category, "city": city})
        matches = normalize_vector_results(response)
        ids = collect_ids(matches)
        if not ids:
            return {"results": [], "matches": matches}
        rows = await self.store.fetch_by_ids(ids)
        by_id = {str(row.get("id")): row for row in rows}
        return {"results": [by_id[i] for i in ids if i in by_id], "matches": matches}

    async def vendor_profile(self, vendor_id: str) -> Optional[Dict[str, Any]]:
        """Vendor row with images, offers, and recent reviews; None when unknown."""
        vendor = await self.store.get_vendor(vendor_id)
        if not vendor:
            return None
        images, offers, reviews = await asyncio.gather(
            self.store.get_images(vendor_id, limit=12),
            self.store.get_offers(vendor_id, limit=10),
            self.store.get_reviews(vendor_id, limit=8),
        )
        return {"vendor": vendor, "images": images, "offers": offers, "reviews": reviews}
