from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

import google.generativeai as genai

from .config import Settings

logger = logging.getLogger("vivaah.llm")

DEFAULT_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
]

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class GeminiClient:
    """Thin async wrapper around the Gemini SDK for streaming chat and fact-bound text."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Keep settings; the SDK is configured in connect().
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: None until connect().
        Dependencies: google.generativeai.
        Failure Modes: None at init.
        If Removed: General chat and vendor narratives cannot call the LLM.
        Testing Notes: Replace with a fake exposing stream_chat and generate_text.
        """
        self._settings = settings
        self._model_name = _normalize_model_name(settings.gemini_model)
        self._connected = False

    async def connect(self) -> None:
        """Configure the SDK API key; raises ValueError if key or model name is missing."""
        if not self._settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required")
        if not self._model_name:
            raise ValueError("Gemini model name is required")
        genai.configure(api_key=self._settings.gemini_api_key)
        self._connected = True

    async def aclose(self) -> None:
        self._connected = False

    def _model(self, system_instruction: Optional[str] = None, tools: Optional[list] = None) -> genai.GenerativeModel:
        kwargs: Dict[str, Any] = {"safety_settings": DEFAULT_SAFETY_SETTINGS}
        if system_instruction:
            kwargs["system_instruction"] = system_instruction
        if tools:
            kwargs["tools"] = tools
        return genai.GenerativeModel(self._model_name, **kwargs)

    async def generate_text(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.2,
        max_output_tokens: int = 1024,
    ) -> str:
        """Purpose: Generate a single text response from a string prompt.
        Inputs/Outputs: Input is prompt and optional system instruction; returns text.
        Side Effects / State: One API call.
        Dependencies: GenerativeModel.generate_content_async.
        Failure Modes: SDK errors propagate; callers fall back to deterministic text.
        If Removed: Detail/review/guide narratives are always template-rendered.
        Testing Notes: Ensure blank model output is returned as "".
        """
        if not self._connected:
            await self.connect()
        response = await self._model(system_instruction).generate_content_async(
            prompt,
            generation_config={"temperature": temperature, "max_output_tokens": max_output_tokens},
        )
        text: Optional[str] = getattr(response, "text", None)
        return (text or "").strip()

    async def stream_chat(
        self,
        contents: List[Dict[str, Any]],
        system_instruction: Optional[str] = None,
        tools: Optional[Dict[str, ToolHandler]] = None,
        max_steps: int = 5,
        temperature: float = 0.4,
    ) -> AsyncIterator[str]:
        """Purpose: Stream a chat answer, executing tool calls between steps.
        Inputs/Outputs: Inputs are Gemini contents, system text, and named async tool
            handlers; yields text deltas.
        Side Effects / State: One streaming API call per step; tool handlers may do I/O.
        Dependencies: GenerativeModel.generate_content_async(stream=True), genai.protos.
        Failure Modes: SDK errors propagate to the caller mid-stream.
        If Removed: The general (non-vendor) path has no answer source.
        Testing Notes: Fake clients yield fixed deltas; tool loops stop after max_steps.
        """
        if not self._connected:
            await self.connect()
        history = list(contents)
        declarations = [_tool_declaration(name) for name in (tools or {})]
        model = self._model(
            system_instruction,
            tools=[genai.protos.Tool(function_declarations=declarations)] if declarations else None,
        )
        for step in range(max_steps):
            response = await model.generate_content_async(
                history,
                generation_config={"temperature": temperature},
                stream=True,
            )
            calls = []
            async for chunk in response:
                for part in _chunk_parts(chunk):
                    if getattr(part, "function_call", None) and part.function_call.name:
                        calls.append(part)
                    elif getattr(part, "text", ""):
                        yield part.text
            if not calls or not tools:
                return
            for call_part in calls:
                name = call_part.function_call.name
                args = dict(call_part.function_call.args or {})
                logger.info("LLM tool call %s (step %s)", name, step + 1)
                handler = tools.get(name)
                result = await handler(args) if handler else {"error": f"unknown tool {name}"}
                history.append({"role": "model", "parts": [call_part]})
                history.append(
                    {
                        "role": "user",
                        "parts": [
                            genai.protos.Part(
                                function_response=genai.protos.FunctionResponse(
                                    name=name, response={"result": result}
                                )
                            )
                        ],
                    }
                )
        logger.warning("LLM tool loop stopped after %s steps", max_steps)


TOOL_DESCRIPTIONS = {
    "web_search": "Search the web for up-to-date wedding planning information. Returns title, url and snippet.",
}


def _tool_declaration(name: str) -> "genai.protos.FunctionDeclaration":
    return genai.protos.FunctionDeclaration(
        name=name,
        description=TOOL_DESCRIPTIONS.get(name, name),
        parameters=genai.protos.Schema(
            type=genai.protos.Type.OBJECT,
            properties={"query": genai.protos.Schema(type=genai.protos.Type.STRING)},
            required=["query"],
        ),
    )


def _chunk_parts(chunk: Any) -> list:
    candidates = getattr(chunk, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return list(getattr(content, "parts", None) or [])


def _normalize_model_name(name: Optional[str]) -> str:
    """Purpose: Normalize model names by stripping prefix and whitespace.
    Inputs/Outputs: Input is a model name string; output is normalized name.
    Side Effects / State: None.
    Dependencies: None; used by GeminiClient.
    Failure Modes: Returns empty string for falsy input.
    If Removed: "models/..." names from env would be passed through unchanged.
    Testing Notes: Ensure "models/foo" becomes "foo" and whitespace is trimmed.
    """
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned
