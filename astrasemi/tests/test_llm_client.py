"""
LLM client tests: robust JSON parsing, the retrying JSON helper and the
OpenAI-compatible transport (via httpx.MockTransport).
"""

import json

import httpx
import pytest

from astrasemi import llm_client
from astrasemi.llm_client import LLMClient, generate_json, parse_json_robust, string_field, string_list
from astrasemi.schemas import LLMMode


class TestParseJsonRobust:

    def test_plain_object(self):
        assert parse_json_robust('{"a": 1}') == ({"a": 1}, True, "")

    def test_markdown_fence(self):
        data, ok, _ = parse_json_robust('```json\n{"top3": ["x"]}\n```')
        assert ok and data == {"top3": ["x"]}

    def test_prefix_and_trailing_text(self):
        data, ok, _ = parse_json_robust('Here you go: {"a": {"b": 2}} hope that helps')
        assert ok and data == {"a": {"b": 2}}

    def test_failures(self):
        assert parse_json_robust("")[1] is False
        assert parse_json_robust("no json here")[1] is False
        assert parse_json_robust("[1, 2, 3]")[1] is False


def test_string_helpers():
    assert string_list(["a", " ", 3, " b "]) == ["a", "b"]
    assert string_list("a") == []
    assert string_list(["a", "b", "c"], limit=2) == ["a", "b"]
    assert string_field("  x ", "default") == "x"
    assert string_field(None, "default") == "default"


# =============================================================================
# generate_json
# =============================================================================

@pytest.mark.asyncio
async def test_generate_json_first_try(fake_llm):
    fake = fake_llm(['{"ok": true}'])
    result = await generate_json("p", "sys", timeout=1)
    assert result.ok
    assert result.data == {"ok": True}
    assert not result.retried
    assert len(fake.calls) == 1


@pytest.mark.asyncio
async def test_generate_json_empty_then_valid(fake_llm):
    fake = fake_llm(["   ", '{"ok": 1}'])
    result = await generate_json("p", "sys", timeout=1)
    assert result.ok
    assert result.retried
    assert fake.calls[1]["system_prompt"].endswith(llm_client.JSON_RETRY_PROMPT)


@pytest.mark.asyncio
async def test_generate_json_without_retry(fake_llm):
    fake = fake_llm(["garbage", '{"ok": 1}'])
    result = await generate_json("p", "sys", timeout=1, retry=False)
    assert not result.ok
    assert len(fake.calls) == 1


@pytest.mark.asyncio
async def test_generate_json_timeout(fake_llm):
    fake_llm(['{"ok": 1}'], delay=1.0)
    result = await generate_json("p", "sys", timeout=0.05)
    assert not result.ok
    assert result.timed_out
    assert result.error == "timeout"


# =============================================================================
# Transport
# =============================================================================

def _completion(content):
    return {
        "choices": [{"message": {"content": content}}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 5},
    }


@pytest.mark.asyncio
async def test_generate_posts_chat_completion(monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion('{"a": 1}'))

    client = LLMClient()
    monkeypatch.setattr(client.settings, "llm_mode", LLMMode.OPENAI)
    monkeypatch.setattr(client.settings, "openai_api_key", "sk-test")
    client._http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    response = await client.generate("hello", system_prompt="sys", json_mode=True, image_url="data:image/png;base64,AAA")
    await client.close()

    assert response.content == '{"a": 1}'
    assert response.usage == {"input_tokens": 12, "output_tokens": 5}
    assert seen["url"].endswith("/chat/completions")
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == client.settings.openai_vision_model
    assert seen["body"]["response_format"] == {"type": "json_object"}
    assert seen["body"]["messages"][0] == {"role": "system", "content": "sys"}
    assert seen["body"]["messages"][1]["content"][1]["image_url"]["url"] == "data:image/png;base64,AAA"


@pytest.mark.asyncio
async def test_generate_http_error_returns_none(monkeypatch):
    client = LLMClient()
    monkeypatch.setattr(client.settings, "llm_mode", LLMMode.OPENAI)
    monkeypatch.setattr(client.settings, "openai_api_key", "sk-test")
    client._http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(503, text="overloaded"))
    )

    assert await client.generate("hello") is None
    await client.close()


@pytest.mark.asyncio
async def test_generate_skipped_without_key_or_mode(monkeypatch):
    client = LLMClient()
    monkeypatch.setattr(client.settings, "llm_mode", LLMMode.NONE)
    assert await client.generate("hello") is None

    monkeypatch.setattr(client.settings, "llm_mode", LLMMode.OPENROUTER)
    monkeypatch.setattr(client.settings, "openrouter_api_key", None)
    assert await client.generate("hello") is None
