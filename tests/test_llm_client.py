"""Tests for the OpenRouter LLM client factory and structured output."""
import json
import sys
import types
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from conftest import make_llm
from fathom import llm_client
from fathom.llm_client import (
    StructuredOutputError,
    extract_json_object,
    generate_object,
    get_client,
    get_model,
    temperature_for_model,
)
from fathom.models.schemas import FindingsPayload, SerpQueryList


class TestGetModel:
    def test_get_model_returns_default_when_no_override(self):
        with patch("fathom.llm_client.settings") as mock_settings:
            mock_settings.openrouter_model = ""
            mock_settings.default_model = "openai/gpt-4o-mini"

            assert get_model() == "openai/gpt-4o-mini"

    def test_get_model_returns_openrouter_override(self):
        with patch("fathom.llm_client.settings") as mock_settings:
            mock_settings.openrouter_model = "openai/gpt-4.1"
            mock_settings.default_model = "openai/gpt-4o-mini"

            assert get_model() == "openai/gpt-4.1"


class TestGetClient:
    def test_get_client_uses_openrouter(self):
        with patch("fathom.llm_client.settings") as mock_settings:
            mock_settings.openrouter_api_key = "sk-or-valid-key"
            mock_settings.openrouter_base_url = "https://openrouter.ai/api/v1"

            openai_module = types.ModuleType("openai")
            mock_openai = MagicMock()
            openai_module.AsyncOpenAI = mock_openai

            with patch.dict(sys.modules, {"openai": openai_module}):
                get_client()

            mock_openai.assert_called_once_with(
                api_key="sk-or-valid-key",
                base_url="https://openrouter.ai/api/v1",
            )

    def test_get_client_requires_api_key(self):
        with patch("fathom.llm_client.settings") as mock_settings:
            mock_settings.openrouter_api_key = ""

            with pytest.raises(ValueError, match="OPENROUTER_API_KEY"):
                get_client()


class TestExtractJsonObject:
    def test_strips_code_fences(self):
        raw = '```json\n{"learnings": ["a"]}\n```'
        assert json.loads(extract_json_object(raw)) == {"learnings": ["a"]}

    def test_keeps_code_blocks_inside_fenced_values(self):
        report = "## Key findings\n```python\nx = 1\n```\nDone"
        raw = "```json\n" + json.dumps({"reportMarkdown": report}) + "\n```"
        assert json.loads(extract_json_object(raw)) == {"reportMarkdown": report}

    def test_fence_without_language_tag(self):
        raw = '```\n{"queries": []}\n```'
        assert json.loads(extract_json_object(raw)) == {"queries": []}

    def test_ignores_surrounding_prose(self):
        raw = 'Here you go: {"reportMarkdown": "body"} Hope it helps.'
        assert json.loads(extract_json_object(raw)) == {"reportMarkdown": "body"}

    def test_raises_without_object(self):
        with pytest.raises(StructuredOutputError):
            extract_json_object("no json here")


def test_temperature_for_gpt5_models():
    assert temperature_for_model("openai/gpt-5-mini") == 1
    assert temperature_for_model("openai/gpt-4o-mini") == 0


class TestGenerateObject:
    @pytest.mark.asyncio
    async def test_parses_reply_into_schema(self):
        llm = make_llm({"learnings": ["a", "b"], "followUpQuestions": ["c"]})

        payload = await generate_object(
            model="openai/gpt-4o-mini",
            system="sys",
            prompt="extract",
            schema=FindingsPayload,
            llm=llm,
        )

        assert payload.learnings == ["a", "b"]
        assert payload.follow_up_questions == ["c"]

    @pytest.mark.asyncio
    async def test_request_carries_schema_and_json_mode(self):
        llm = make_llm({"queries": []})

        await generate_object(
            model="openai/gpt-4o-mini",
            system="sys",
            prompt="plan",
            schema=SerpQueryList,
            max_tokens=321,
            llm=llm,
        )

        kwargs = llm.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o-mini"
        assert kwargs["max_tokens"] == 321
        assert kwargs["temperature"] == 0
        assert kwargs["response_format"] == {"type": "json_object"}
        system_message, user_message = kwargs["messages"]
        assert system_message["role"] == "system"
        assert system_message["content"].startswith("sys")
        assert '"queries"' in system_message["content"]
        assert user_message == {"role": "user", "content": "plan"}

    @pytest.mark.asyncio
    async def test_schema_violation_raises(self):
        llm = make_llm({"learnings": "not a list", "followUpQuestions": []})

        with pytest.raises(ValidationError):
            await generate_object(
                model="m", system="s", prompt="p", schema=FindingsPayload, llm=llm
            )

    @pytest.mark.asyncio
    async def test_transport_error_is_logged_and_reraised(self):
        llm = make_llm()
        llm.chat.completions.create.side_effect = ConnectionError("reset")

        with patch.object(llm_client.log_service, "log_llm_call") as log_call:
            with pytest.raises(ConnectionError):
                await generate_object(
                    model="m", system="s", prompt="p", schema=FindingsPayload, llm=llm
                )

        assert log_call.call_args.kwargs["status"] == "error"
        assert log_call.call_args.kwargs["error"] == "reset"

    @pytest.mark.asyncio
    async def test_uses_shared_client_when_none_given(self):
        llm = make_llm({"queries": []})

        with patch.object(llm_client, "_client", llm):
            result = await generate_object(
                model="m", system="s", prompt="p", schema=SerpQueryList
            )

        assert result.queries == []


def test_system_prompt_mentions_current_date():
    prompt = llm_client.system_prompt()
    assert "Today is" in prompt
    assert "reasoning" in prompt
