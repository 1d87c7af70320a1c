from __future__ import annotations

import logging
from typing import Optional

from openai import AsyncOpenAI

from .config import Settings
from .models import ModerationResult

logger = logging.getLogger("vivaah.moderation")

DEFAULT_DENIAL_MESSAGE = "Your message violates our guidelines. I can't answer that."

CATEGORY_DENIALS = {
    "self-harm": (
        "I'm really sorry you're feeling this way, but I can't help with that. "
        "Please reach out to someone you trust or a local helpline."
    ),
    "sexual/minors": "I can't help with that request.",
    "violence": "I can't help with anything that could cause harm to people.",
    "illicit": "I can't help with illegal or unsafe activities.",
}


class ModerationChecker:
    """Wraps the OpenAI moderation endpoint and maps categories to denial text."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client: Optional[AsyncOpenAI] = None

    async def connect(self) -> None:
        if not self._settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required")
        self._client = AsyncOpenAI(api_key=self._settings.openai_api_key)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def check(self, text: str) -> ModerationResult:
        """Purpose: Ask the moderation model whether text is acceptable.
        Inputs/Outputs: Input is user text; output is a ModerationResult.
        Side Effects / State: One API call.
        Dependencies: openai moderations endpoint.
        Failure Modes: API errors propagate; the orchestrator fails open.
        If Removed: Unsafe prompts reach the vendor and LLM paths.
        Testing Notes: Use a fake checker returning flagged=True to test the denial path.
        """
        if self._client is None:
            await self.connect()
        response = await self._client.moderations.create(model=self._settings.moderation_model, input=text)
        result = response.results[0]
        if not result.flagged:
            return ModerationResult(flagged=False)
        categories = getattr(result, "categories", None)
        raw = categories.model_dump(by_alias=True) if hasattr(categories, "model_dump") else {}
        flagged_categories = sorted(name for name, value in raw.items() if value)
        denial = DEFAULT_DENIAL_MESSAGE
        for category in flagged_categories:
            for prefix, message in CATEGORY_DENIALS.items():
                if category.startswith(prefix):
                    denial = message
                    break
            if denial != DEFAULT_DENIAL_MESSAGE:
                break
        logger.info("Moderation flagged message: %s", ", ".join(flagged_categories) or "unspecified")
        return ModerationResult(flagged=True, denial_message=denial, categories=flagged_categories)
