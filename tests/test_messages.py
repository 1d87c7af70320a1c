"""Tests for text extraction and request normalisation."""

import pytest

from vivaah.messages import RequestPayloadError, get_latest_user_text, normalize_request_payload, to_llm_contents
from vivaah.models import ChatMessage


def test_latest_user_text_joins_text_parts():
    """Only text parts of the last user message are concatenated."""

    messages = [
        ChatMessage(id="1", role="user", parts=[{"type": "text", "text": "old"}]),
        ChatMessage(id="2", role="assistant", parts=[{"type": "text", "text": "reply"}]),
        ChatMessage(
            id="3",
            role="user",
            parts=[{"type": "text", "text": "caterers "}, {"type": "file", "url": "x"}, {"type": "text", "text": "in Mumbai"}],
        ),
    ]

    assert get_latest_user_text(messages) == "caterers in Mumbai"


def test_latest_user_text_tolerates_malformed_parts():
    """Parts without a type, non-string text, or non-dict parts contribute nothing."""

    messages = [ChatMessage(id="1", role="user", parts=[{"text": "no type"}, {"type": "text", "text": 42}, "junk", None])]

    assert get_latest_user_text(messages) is None


def test_latest_user_text_none_without_user_message():
    assert get_latest_user_text([]) is None
    assert get_latest_user_text([ChatMessage(id="1", role="assistant", parts=[{"type": "text", "text": "hi"}])]) is None


def test_normalize_request_payload_accepts_single_message():
    """{"message": "..."} becomes one user message."""

    messages = normalize_request_payload({"message": "hello"})

    assert len(messages) == 1
    assert messages[0].role == "user"
    assert get_latest_user_text(messages) == "hello"


def test_normalize_request_payload_rejects_missing_messages():
    with pytest.raises(RequestPayloadError):
        normalize_request_payload({"foo": 1})
    with pytest.raises(RequestPayloadError):
        normalize_request_payload([1, 2])


def test_to_llm_contents_maps_roles_and_collects_system_text():
    messages = [
        ChatMessage(id="s", role="system", parts=[{"type": "text", "text": "Be brief."}]),
        ChatMessage(id="1", role="user", parts=[{"type": "text", "text": "hi"}]),
        ChatMessage(id="2", role="assistant", parts=[{"type": "text", "text": "hello"}]),
    ]

    contents, system_text = to_llm_contents(messages)

    assert system_text == "Be brief."
    assert [item["role"] for item in contents] == ["user", "model"]
