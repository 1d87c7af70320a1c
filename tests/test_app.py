"""HTTP surface tests with an injected agent."""

import json

from fastapi.testclient import TestClient

from conftest import SAMPLE_VENDORS, FakeLLM, FakeModeration, FakeStore, FakeVector, FakeWeb, make_settings
from vivaah.agent_pipeline import VendorChatAgent
from vivaah.app import create_app


class LifecycleAgent(VendorChatAgent):
    """Real orchestrator over fakes that records lifespan calls."""

    connected = False
    closed = False

    async def connect(self):
        self.connected = True

    async def aclose(self):
        self.closed = True


def _agent(**overrides):
    values = dict(
        settings=make_settings(),
        llm=FakeLLM(deltas=["Congrats", "!"]),
        vector=FakeVector(matches=[{"id": "v1", "metadata": {"name": "Shree Caterers"}}]),
        store=FakeStore(SAMPLE_VENDORS),
        moderation=FakeModeration(),
        web=FakeWeb(),
    )
    values.update(overrides)
    return LifecycleAgent(**values)


def _events(response):
    lines = [line for line in response.text.split("\n\n") if line.startswith("data: ")]
    assert lines[-1] == "data: [DONE]"
    return [json.loads(line[len("data: "):]) for line in lines[:-1]]


def test_chat_streams_segments():
    agent = _agent()
    with TestClient(create_app(agent=agent)) as client:
        response = client.post("/api/chat", json={"message": "we just got engaged"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _events(response)
    assert events[0]["type"] == "start"
    assert events[-1]["type"] == "finish"
    assert "".join(event.get("delta", "") for event in events) == "Congrats!"
    assert agent.connected and agent.closed


def test_chat_vendor_search_emits_tool_result():
    with TestClient(create_app(agent=_agent())) as client:
        response = client.post(
            "/api/chat",
            json={"messages": [{"id": "1", "role": "user", "parts": [{"type": "text", "text": "caterers in Mumbai"}]}]},
        )

    tool_events = [event for event in _events(response) if event["type"] == "tool-result"]
    assert tool_events[0]["tool"] == "vendor_hits"
    assert tool_events[0]["result"][0]["id"] == "v1"


def test_chat_rejects_malformed_json():
    with TestClient(create_app(agent=_agent())) as client:
        response = client.post("/api/chat", content=b"{not json", headers={"content-type": "application/json"})

    assert response.status_code == 400
    assert "error" in response.json()


def test_chat_rejects_missing_messages():
    with TestClient(create_app(agent=_agent())) as client:
        response = client.post("/api/chat", json={"hello": "world"})

    assert response.status_code == 400
    assert "error" in response.json()


def test_search_endpoint():
    with TestClient(create_app(agent=_agent())) as client:
        missing = client.post("/api/search", json={"q": "  "})
        found = client.post("/api/search", json={"q": "caterers", "topK": 3})

    assert missing.status_code == 400
    assert found.status_code == 200
    assert [row["id"] for row in found.json()["results"]] == ["v1"]


def test_vendor_endpoint_and_health():
    with TestClient(create_app(agent=_agent())) as client:
        assert client.get("/api/vendor/v1").json()["vendor"]["id"] == "v1"
        missing = client.get("/api/vendor/unknown")
        health = client.get("/health")

    assert missing.status_code == 404
    assert missing.json() == {"error": "Vendor not found"}
    assert health.json() == {"status": "ok"}
