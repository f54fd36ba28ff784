"""
Tests for AI vision gateways (Gemini REST, OpenAI-compatible chat)

No network: Gemini runs on httpx.MockTransport, the OpenAI client is mocked.
"""
import asyncio
import json
import os
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from diagnosis_fixtures import AI_CONTENT
from plantdoc.models import ERROR_SOURCE_AI, ERROR_SOURCE_APP
from plantdoc.services.vision_gateway import (
    NOT_AVAILABLE_MESSAGE,
    GeminiVisionGateway,
    OpenAICompatibleVisionGateway,
    build_diagnosis_prompt,
    split_data_url,
)


def run(coro):
    return asyncio.run(coro)


def gemini_with(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiVisionGateway(api_key="test-key", model="gemini-2.0-flash", http_client=client)


# =============================================================================
# Prompt helpers
# =============================================================================
class TestPrompt:

    def test_text_only_prompt(self):
        prompt = build_diagnosis_prompt("la bi vang", "vi", has_image=False)
        assert "KHONG CO HINH ANH" in prompt
        assert "la bi vang" in prompt
        assert "Tra loi bang tieng Viet." in prompt

    def test_image_prompt_english(self):
        prompt = build_diagnosis_prompt(None, "en", has_image=True)
        assert "phan tich hinh anh" in prompt
        assert "Respond in English." in prompt

    @pytest.mark.parametrize("raw,expected", [
        ("data:image/png;base64,AAAA", ("image/png", "AAAA")),
        ("data:image/webp;base64,BBBB", ("image/webp", "BBBB")),
        ("CCCC", ("image/jpeg", "CCCC")),
    ])
    def test_split_data_url(self, raw, expected):
        assert split_data_url(raw) == expected


# =============================================================================
# Gemini
# =============================================================================
class TestGeminiGateway:

    def test_success(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "candidates": [{"content": {"parts": [{"text": AI_CONTENT}]}}],
            })

        result = run(gemini_with(handler).analyze_image(user_description="yellow spots"))

        assert result.success is True
        assert result.content == AI_CONTENT
        assert result.debug_info.http_status_code == 200
        assert result.debug_info.has_image is False
        assert "models/gemini-2.0-flash:generateContent" in seen["url"]
        assert "key=test-key" in seen["url"]
        assert seen["body"]["generationConfig"]["responseMimeType"] == "application/json"

    def test_inline_image(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "{}"}]}}]})

        result = run(gemini_with(handler).analyze_image(image_base64="data:image/png;base64,AAAA"))
        parts = seen["body"]["contents"][0]["parts"]
        assert parts[1] == {"inline_data": {"mime_type": "image/png", "data": "AAAA"}}
        assert "responseMimeType" not in seen["body"]["generationConfig"]
        assert result.debug_info.has_image is True

    def test_provider_error(self):
        def handler(request):
            return httpx.Response(429, json={"error": {"code": 429, "message": "Resource exhausted"}})

        result = run(gemini_with(handler).analyze_image(user_description="x"))

        assert result.success is False
        assert result.debug_info.error_source == ERROR_SOURCE_AI
        assert result.debug_info.http_status_code == 429
        assert result.debug_info.error_code == 429
        assert result.debug_info.error_message == "Resource exhausted"

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        result = run(gemini_with(handler).analyze_image(user_description="x"))
        assert result.success is False
        assert result.debug_info.error_source == ERROR_SOURCE_APP
        assert "Connection error" in result.debug_info.error_message

    def test_no_text_in_answer(self):
        def handler(request):
            return httpx.Response(200, json={"candidates": []})

        result = run(gemini_with(handler).analyze_image(user_description="x"))
        assert result.success is False
        assert result.debug_info.error_source == ERROR_SOURCE_APP

    def test_raw_excerpt_truncated(self):
        def handler(request):
            return httpx.Response(500, text="x" * 2000)

        result = run(gemini_with(handler).analyze_image(user_description="x"))
        assert result.debug_info.error_source == ERROR_SOURCE_AI
        assert result.debug_info.raw_response_excerpt == "x" * 500 + "..."
        assert result.debug_info.error_message == "Unknown error"

    def test_unavailable_without_key(self):
        gateway = GeminiVisionGateway(api_key=None, model="gemini-2.0-flash")
        assert gateway.is_available() is False
        result = run(gateway.analyze_image(user_description="x"))
        assert result.success is False
        assert result.debug_info.error_source == ERROR_SOURCE_APP
        assert result.debug_info.error_message == NOT_AVAILABLE_MESSAGE


# =============================================================================
# OpenAI-compatible (OpenRouter / Groq)
# =============================================================================
def openai_with(create):
    client = MagicMock()
    client.chat.completions.create = create
    return OpenAICompatibleVisionGateway(
        provider_name="OpenRouter",
        api_key=None,
        model="google/gemini-2.0-flash-001",
        base_url="https://openrouter.ai/api/v1",
        client=client,
    )


def completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


class TestOpenAICompatibleGateway:

    def test_success(self):
        create = AsyncMock(return_value=completion(AI_CONTENT))
        result = run(openai_with(create).analyze_image(image_url="https://example.com/leaf.jpg"))

        assert result.success is True
        assert result.content == AI_CONTENT
        assert result.debug_info.provider == "OpenRouter"
        assert result.debug_info.has_image is True

        messages = create.call_args.kwargs["messages"]
        assert messages[0]["content"][1] == {
            "type": "image_url",
            "image_url": {"url": "https://example.com/leaf.jpg"},
        }

    def test_bare_base64_wrapped_as_data_url(self):
        create = AsyncMock(return_value=completion(AI_CONTENT))
        run(openai_with(create).analyze_image(image_base64="AAAA"))
        url = create.call_args.kwargs["messages"][0]["content"][1]["image_url"]["url"]
        assert url == "data:image/jpeg;base64,AAAA"

    def test_status_error(self):
        request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
        response = httpx.Response(429, request=request, text='{"error": "rate limited"}')
        error = openai.APIStatusError("rate limited", response=response, body=None)
        create = AsyncMock(side_effect=error)

        result = run(openai_with(create).analyze_image(user_description="x"))

        assert result.success is False
        assert result.debug_info.error_source == ERROR_SOURCE_AI
        assert result.debug_info.http_status_code == 429
        assert result.debug_info.error_message == "rate limited"
        assert "rate limited" in result.debug_info.raw_response_excerpt

    def test_connection_error(self):
        request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
        create = AsyncMock(side_effect=openai.APIConnectionError(request=request))

        result = run(openai_with(create).analyze_image(user_description="x"))
        assert result.success is False
        assert result.debug_info.error_source == ERROR_SOURCE_APP

    def test_malformed_provider_answer(self):
        request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
        error = openai.APIResponseValidationError(response=httpx.Response(200, request=request), body=None)
        create = AsyncMock(side_effect=error)

        result = run(openai_with(create).analyze_image(user_description="x"))

        assert result.success is False
        assert result.debug_info.error_source == ERROR_SOURCE_AI
        assert result.debug_info.error_message == error.message

    def test_empty_answer(self):
        create = AsyncMock(return_value=completion(""))
        result = run(openai_with(create).analyze_image(user_description="x"))
        assert result.success is False
        assert result.debug_info.error_source == ERROR_SOURCE_APP
        assert result.debug_info.http_status_code == 200

    def test_unavailable_without_client(self):
        gateway = OpenAICompatibleVisionGateway(
            provider_name="Groq", api_key=None, model="llama", base_url="https://api.groq.com/openai/v1",
        )
        assert gateway.is_available() is False
        result = run(gateway.analyze_image(user_description="x"))
        assert result.debug_info.error_message == NOT_AVAILABLE_MESSAGE
