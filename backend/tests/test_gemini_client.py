import asyncio
import json

import httpx
import pytest

from skillsphere.gemini_client import GeminiClient, GeminiError, extract_json_object, get_gemini_client
from skillsphere.settings import settings


def _gemini_ok(text):
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def _run_client(transport, coro_factory, **kwargs):
    async def _go():
        client = GeminiClient("test-key", transport=transport, **kwargs)
        try:
            return await coro_factory(client)
        finally:
            await client.aclose()

    return asyncio.run(_go())


def test_generate_sends_prompt_and_json_config():
    seen = {}

    def handler(request: httpx.Request):
        seen["params"] = dict(request.url.params)
        seen["body"] = json.loads(request.content)
        return _gemini_ok('{"ok": true}')

    text = _run_client(
        httpx.MockTransport(handler),
        lambda c: c.generate("hello", system_instruction="be brief", json_output=True, temperature=0.2),
    )
    assert text == '{"ok": true}'
    assert seen["params"]["key"] == "test-key"
    body = seen["body"]
    assert body["contents"] == [{"role": "user", "parts": [{"text": "hello"}]}]
    assert body["systemInstruction"] == {"parts": [{"text": "be brief"}]}
    assert body["generationConfig"] == {"responseMimeType": "application/json", "temperature": 0.2}


def test_chat_maps_assistant_to_model_role():
    seen = {}

    def handler(request: httpx.Request):
        seen["body"] = json.loads(request.content)
        return _gemini_ok("sure")

    messages = [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello!"},
        {"role": "user", "content": "help me"},
    ]
    reply = _run_client(httpx.MockTransport(handler), lambda c: c.chat(messages))
    assert reply == "sure"
    assert [c["role"] for c in seen["body"]["contents"]] == ["user", "model", "user"]
    assert "generationConfig" not in seen["body"]


def test_http_error_without_fallback_raises_gemini_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="overloaded"))
    with pytest.raises(GeminiError):
        _run_client(transport, lambda c: c.generate("hello"))


def test_unexpected_payload_raises_gemini_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []}))
    with pytest.raises(GeminiError):
        _run_client(transport, lambda c: c.generate("hello"))


def test_thinking_budget_retried_without_config():
    bodies = []

    def handler(request: httpx.Request):
        body = json.loads(request.content)
        bodies.append(body)
        if "thinkingConfig" in body.get("generationConfig", {}):
            return httpx.Response(400, json={"error": "unsupported"})
        return _gemini_ok("plain")

    text = _run_client(httpx.MockTransport(handler), lambda c: c.generate("hi", thinking_budget=0))
    assert text == "plain"
    assert len(bodies) == 2
    assert "generationConfig" not in bodies[1]


def test_openrouter_fallback_used_when_configured(monkeypatch):
    monkeypatch.setattr(settings, "openrouter_api_key", "or-key")
    seen = {}

    def handler(request: httpx.Request):
        if request.url.host == "openrouter.ai":
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"choices": [{"message": {"content": "from fallback"}}]})
        return httpx.Response(500, text="primary down")

    text = _run_client(
        httpx.MockTransport(handler),
        lambda c: c.generate("hello", system_instruction="sys"),
    )
    assert text == "from fallback"
    assert seen["auth"] == "Bearer or-key"
    assert seen["body"]["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hello"},
    ]


def test_missing_key_is_rejected(monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", None)
    with pytest.raises(ValueError):
        GeminiClient()


def test_dependency_yields_none_without_key(monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", None)

    async def _first():
        gen = get_gemini_client()
        value = await gen.__anext__()
        await gen.aclose()
        return value

    assert asyncio.run(_first()) is None


@pytest.mark.parametrize("text", [
    '{"a": 1}',
    'Sure!\n```json\n{"a": 1}\n```\nEnjoy.',
    'Result: {"a": 1} -- end',
])
def test_extract_json_object_variants(text):
    assert extract_json_object(text) == {"a": 1}


def test_extract_json_object_raises_on_garbage():
    with pytest.raises(ValueError):
        extract_json_object("no braces here")
