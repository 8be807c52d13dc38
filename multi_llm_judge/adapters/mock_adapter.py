from __future__ import annotations

import json

import httpx

MOCK_REPLY = "Mock response."


def _reply_for(request: httpx.Request) -> dict:
    path = request.url.path
    if path.endswith(":generateContent"):
        model = path.rsplit("/", 1)[-1].split(":", 1)[0]
        return {
            "candidates": [{"content": {"parts": [{"text": f"{MOCK_REPLY} ({model})"}]}}],
            "usageMetadata": {"promptTokenCount": 0, "candidatesTokenCount": 0, "totalTokenCount": 0},
        }
    body = json.loads(request.content or b"{}")
    model = body.get("model", "mock")
    if path.endswith("/messages"):
        return {
            "content": [{"type": "text", "text": f"{MOCK_REPLY} ({model})"}],
            "usage": {"input_tokens": 0, "output_tokens": 0},
        }
    return {
        "choices": [{"message": {"role": "assistant", "content": f"{MOCK_REPLY} ({model})"}}],
        "usage": {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
    }


def mock_transport() -> httpx.MockTransport:
    """Offline transport that answers every provider with a canned reply in its own wire shape."""
    return httpx.MockTransport(lambda request: httpx.Response(200, json=_reply_for(request)))
