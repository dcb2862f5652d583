"""
Unit tests for the structured language-model capability.

Tests cover:
- JSON-only parsing with code fences
- Tagged results for provider failures and schema mismatches
- Model tier routing
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from forecaster.agents.researcher.schemas import FindingsSummary
from forecaster.errors import ParseError, ProviderError
from forecaster.llm.capability import (
    ChatLanguageModel,
    Ok,
    ProviderFailure,
    SchemaMismatch,
    TaskSpec,
    message_text,
    parse_strict_json,
)


TASK = TaskSpec(name="summarize_for", system="Summarize.", prompt="findings")


def _chat(content=None, error=None):
    model = MagicMock()
    if error is not None:
        model.ainvoke = AsyncMock(side_effect=error)
    else:
        model.ainvoke = AsyncMock(return_value=MagicMock(content=content))
    return model


class TestParseStrictJson:
    """Tests for parse_strict_json()."""

    def test_plain_object(self):
        assert parse_strict_json('{"a": 1}') == {"a": 1}

    def test_fenced_object(self):
        assert parse_strict_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_prose_rejected(self):
        with pytest.raises(ValueError):
            parse_strict_json('Sure! {"a": 1}')

    def test_message_text_flattens_blocks(self):
        blocks = [{"type": "text", "text": '{"summary":'}, {"type": "text", "text": ' "x"}'}]
        assert message_text(blocks) == '{"summary": "x"}'


class TestChatLanguageModel:
    """Tests for ChatLanguageModel.generate_structured()."""

    def test_ok(self):
        llm = ChatLanguageModel(_chat('{"summary": "CPI fell"}'))
        result = asyncio.run(llm.generate_structured(TASK, FindingsSummary))
        assert isinstance(result, Ok)
        assert result.ok
        assert result.unwrap().summary == "CPI fell"

    def test_provider_exception_becomes_failure(self):
        llm = ChatLanguageModel(_chat(error=RuntimeError("throttled")))
        result = asyncio.run(llm.generate_structured(TASK, FindingsSummary))
        assert isinstance(result, ProviderFailure)
        assert "throttled" in result.error
        with pytest.raises(ProviderError):
            result.unwrap()

    def test_invalid_json_becomes_mismatch(self):
        llm = ChatLanguageModel(_chat("I cannot help with that"))
        result = asyncio.run(llm.generate_structured(TASK, FindingsSummary))
        assert isinstance(result, SchemaMismatch)
        assert result.raw == "I cannot help with that"
        with pytest.raises(ParseError):
            result.unwrap()

    def test_wrong_shape_becomes_mismatch(self):
        llm = ChatLanguageModel(_chat('{"digest": "x"}'))
        result = asyncio.run(llm.generate_structured(TASK, FindingsSummary))
        assert isinstance(result, SchemaMismatch)
        assert not result.ok

    def test_small_tier_uses_small_model(self):
        big = _chat('{"summary": "big"}')
        small = _chat('{"summary": "small"}')
        llm = ChatLanguageModel(big, small)

        small_task = TaskSpec(name="t", system="s", prompt="p", tier="small")
        result = asyncio.run(llm.generate_structured(small_task, FindingsSummary))

        assert result.unwrap().summary == "small"
        big.ainvoke.assert_not_called()

    def test_schema_sent_with_system_prompt(self):
        model = _chat('{"summary": "x"}')
        asyncio.run(ChatLanguageModel(model).generate_structured(TASK, FindingsSummary))
        messages = model.ainvoke.call_args.args[0]
        assert messages[0]["role"] == "system"
        assert "summary" in messages[0]["content"]
        assert messages[1] == {"role": "user", "content": "findings"}


class TestBuildLanguageModel:
    """Tests for chat model construction."""

    def test_openai_tiers(self, monkeypatch):
        from forecaster.config import Settings
        from forecaster.llm.client import build_language_model

        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        llm = build_language_model(Settings(llm_model="gpt-4o", llm_model_small="gpt-4o-mini"))

        assert isinstance(llm, ChatLanguageModel)
        assert llm.llm.model_name == "gpt-4o"
        assert llm.llm_small.model_name == "gpt-4o-mini"
