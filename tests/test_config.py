"""Tests for environment-driven settings and prompt files."""

import pytest

from vivaah.config import load_settings
from vivaah.prompt_loader import SYSTEM_PROMPT, VENDOR_FACTS_PROMPT, load_named_prompt


def test_defaults(monkeypatch):
    for name in ("VECTOR_TOP_K", "SHORTLIST_SIZE", "VIVAAH_INLINE_PAYLOAD", "GEMINI_MODEL", "PINECONE_INDEX_NAME"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.vector_top_k == 8
    assert settings.shortlist_size == 6
    assert settings.inline_payload is False
    assert settings.gemini_model == "gemini-2.5-flash"


def test_overrides(monkeypatch):
    monkeypatch.setenv("SHORTLIST_SIZE", "4")
    monkeypatch.setenv("VIVAAH_INLINE_PAYLOAD", "true")
    monkeypatch.setenv("PINECONE_INDEX_NAME", "wedding-vendors")

    settings = load_settings()

    assert settings.shortlist_size == 4
    assert settings.inline_payload is True
    assert settings.pinecone_index == "wedding-vendors"


def test_invalid_integer_raises(monkeypatch):
    monkeypatch.setenv("VECTOR_TOP_K", "many")

    with pytest.raises(ValueError):
        load_settings()


def test_shipped_prompts_load():
    settings = load_settings()

    system = load_named_prompt(settings.prompts_dir, SYSTEM_PROMPT)
    facts = load_named_prompt(settings.prompts_dir, VENDOR_FACTS_PROMPT)

    assert system.strip()
    assert "{facts}" in facts and "{query}" in facts
