"""Chat history helpers: latest user text, request normalisation, LLM contents."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models import ChatMessage


class RequestPayloadError(ValueError):
    """Raised when a chat request body cannot be turned into a message list."""


def _part_text(part: Any) -> str:
    # Anything that is not a text part with a string payload contributes nothing.
    if isinstance(part, dict):
        if part.get("type") != "text":
            return ""
        text = part.get("text")
    else:
        if getattr(part, "type", None) != "text":
            return ""
        text = getattr(part, "text", None)
    return text if isinstance(text, str) else ""


def get_latest_user_text(messages: Sequence[ChatMessage]) -> Optional[str]:
    """Purpose: Pull the latest user utterance out of the chat history.
    Inputs/Outputs: Input is an ordered message list; output is the joined text of the
        last user message's text parts, or None.
    Side Effects / State: None; pure function.
    Dependencies: Used by the orchestrator before moderation and intent detection.
    Failure Modes: Malformed parts contribute "" instead of raising.
    If Removed: Moderation and intent routing have no input text.
    Testing Notes: Empty list, no user message, and image-only parts all return None.
    """
    # Walk backwards to the newest user message and join its text parts.
    for message in reversed(list(messages or [])):
        if getattr(message, "role", None) != "user":
            continue
        text = "".join(_part_text(part) for part in (message.parts or []))
        return text or None
    return None


def normalize_request_payload(body: Any) -> List[ChatMessage]:
    """Purpose: Normalize a chat request body into a list of ChatMessage.
    Inputs/Outputs: Input is the decoded JSON body; output is the message list.
    Side Effects / State: None.
    Dependencies: ChatMessage pydantic model.
    Failure Modes: Raises RequestPayloadError when neither messages nor message is usable.
    If Removed: The chat route cannot accept the single-message shorthand.
    Testing Notes: {"message": "hi"} becomes one user message with one text part.
    """
    if not isinstance(body, dict):
        raise RequestPayloadError("Request body must be a JSON object")
    raw_messages = body.get("messages")
    if isinstance(raw_messages, list):
        messages: List[ChatMessage] = []
        for raw in raw_messages:
            if not isinstance(raw, dict):
                continue
            parts = raw.get("parts")
            if not isinstance(parts, list):
                # Older clients send plain `content` strings.
                content = raw.get("content")
                parts = [{"type": "text", "text": content}] if isinstance(content, str) else []
            messages.append(
                ChatMessage(
                    id=str(raw.get("id") or uuid.uuid4().hex),
                    role=str(raw.get("role") or "user"),
                    parts=parts,
                )
            )
        return messages
    message = body.get("message")
    if isinstance(message, str) and message.strip():
        return [ChatMessage(id=uuid.uuid4().hex, role="user", parts=[{"type": "text", "text": message}])]
    raise RequestPayloadError("Missing 'messages' or 'message' in request body")


def to_llm_contents(messages: Sequence[ChatMessage]) -> Tuple[List[Dict[str, Any]], str]:
    """Purpose: Convert UI history into Gemini contents plus extra system text.
    Inputs/Outputs: Input is the message list; output is (contents, system_text).
    Side Effects / State: None.
    Dependencies: Used by the general LLM path in the orchestrator.
    Failure Modes: Messages without text are skipped.
    If Removed: The general path cannot forward history to the model.
    Testing Notes: assistant messages map to role "model"; system text is collected.
    """
    contents: List[Dict[str, Any]] = []
    system_chunks: List[str] = []
    for message in messages or []:
        text = "".join(_part_text(part) for part in (message.parts or []))
        if not text:
            continue
        if message.role == "system":
            system_chunks.append(text)
            continue
        role = "model" if message.role == "assistant" else "user"
        contents.append({"role": role, "parts": [{"text": text}]})
    return contents, "\n\n".join(system_chunks)
