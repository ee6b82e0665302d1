"""Tests for conversation compression and fact extraction."""
import threading
import time
from unittest.mock import MagicMock, call

import pytest

from mocks.mock_providers import ScriptedLLM
from recallcache.enums import Role
from recallcache.memory_unit import (
    ConversationMessage,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)
from recallcache.short_term_memory import (
    CompressionConfig,
    ConversationCompressor,
    DomainFacts,
    count_recent_messages,
    extract_domain_facts,
    extract_facts,
    get_context_window,
    is_boundary_message,
    parse_fact_list,
    serialize_messages,
    should_compress,
)
from recallcache.short_term_memory.compression import ACKNOWLEDGEMENT


def _turns(count):
    history = []
    for i in range(count):
        history.append(ConversationMessage.user(f"question {i}"))
        history.append(ConversationMessage.assistant(f"answer {i}"))
    return history


@pytest.fixture
def compressors():
    created = []

    def _make(llm, cache=None, **config_kwargs):
        compressor = ConversationCompressor(llm, cache=cache, config=CompressionConfig(**config_kwargs))
        created.append(compressor)
        return compressor

    yield _make

    for compressor in created:
        compressor.close()


class TestCompressionDecision:
    """Context window lookup and the compression threshold."""

    @pytest.mark.unit
    @pytest.mark.compression
    def test_context_window_lookup(self):
        assert get_context_window("gpt-4o") == 128_000
        assert get_context_window("gpt-4.1") == 1_000_000
        assert get_context_window("claude-3-5-haiku-latest") == 200_000
        assert get_context_window("some-new-model") == 128_000

    @pytest.mark.unit
    @pytest.mark.compression
    def test_threshold_is_strict(self):
        assert not should_compress(95_000, 1_000, "gpt-4o")
        assert should_compress(95_000, 1_001, "gpt-4o")

    @pytest.mark.unit
    @pytest.mark.compression
    def test_compressor_uses_llm_model_and_config(self, compressors):
        compressor = compressors(ScriptedLLM(model="gpt-4o"), compression_threshold=0.5)

        assert compressor.should_compress(64_001, 0)
        assert not compressor.should_compress(64_001, 0, model="gpt-4.1")

    @pytest.mark.unit
    @pytest.mark.compression
    def test_provider_window_overrides_table(self, compressors):
        compressor = compressors(ScriptedLLM(model="gpt-4o", context_window=10_000))

        assert compressor.should_compress(7_501, 0)
        assert not compressor.should_compress(7_501, 0, model="gpt-4.1")
        assert should_compress(7_501, 0, "gpt-4o", context_window=10_000)
        assert not should_compress(7_501, 0, "gpt-4o")

    @pytest.mark.unit
    @pytest.mark.compression
    def test_config_validation(self):
        with pytest.raises(ValueError):
            CompressionConfig(recent_turns_to_keep=0)
        with pytest.raises(ValueError):
            CompressionConfig(compression_threshold=0)


class TestSplitAndSerialize:
    """Split index and transcript rendering."""

    @pytest.mark.unit
    @pytest.mark.compression
    def test_exactly_turns_to_keep_is_a_no_op(self):
        assert count_recent_messages(_turns(4), 4) == 0
        assert count_recent_messages(_turns(2), 4) == 0

    @pytest.mark.unit
    @pytest.mark.compression
    def test_one_extra_turn(self):
        history = _turns(5)

        split = count_recent_messages(history, 4)

        assert split == 2
        assert sum(1 for message in history[split:] if message.role == Role.USER) == 4

    @pytest.mark.unit
    @pytest.mark.compression
    def test_serialize_messages(self):
        messages = [
            ConversationMessage.user("hi"),
            ConversationMessage(
                role=Role.ASSISTANT,
                content=[
                    TextPart(text="Let me check"),
                    ToolCallPart(tool_name="bash", args={"command": "ls"}),
                ],
            ),
            ConversationMessage(
                role=Role.TOOL,
                content=[ToolResultPart(tool_name="bash", result="x" * 600)],
            ),
            ConversationMessage(role=Role.TOOL, content=[ToolResultPart(result={"ok": True})]),
        ]

        assert serialize_messages(messages).split("\n") == [
            "User: hi",
            "Assistant: Let me check",
            'Assistant [tool call]: bash({"command": "ls"})',
            "Tool [bash]: " + "x" * 500 + "...",
            'Tool [tool]: {"ok": true}',
        ]


class TestFactParsing:
    """Tolerant parsing of extraction replies."""

    @pytest.mark.unit
    @pytest.mark.compression
    @pytest.mark.parametrize(
        "reply",
        ['```json\n["a", "b"]\n```', '```\n["a", "b"]\n```', '["a", "b"]', '  ["a", "b"]  '],
    )
    def test_fenced_and_plain_arrays(self, reply):
        assert parse_fact_list(reply) == ["a", "b"]

    @pytest.mark.unit
    @pytest.mark.compression
    def test_invalid_entries_are_dropped(self):
        reply = '["ok", 3, null, "", "' + "y" * 501 + '", "' + "z" * 500 + '"]'

        assert parse_fact_list(reply) == ["ok", "z" * 500]

    @pytest.mark.unit
    @pytest.mark.compression
    @pytest.mark.parametrize("reply", ['{"facts": ["a"]}', "not json", "", None])
    def test_malformed_replies_yield_nothing(self, reply):
        assert parse_fact_list(reply) == []


class TestDomainExtraction:
    """Per-domain extraction with independent failures."""

    @pytest.mark.unit
    @pytest.mark.compression
    def test_returns_domains_with_facts(self, scripted_llm):
        result = extract_domain_facts("User: hi", scripted_llm)

        assert result == [
            DomainFacts("tool-usage", ["Tests are run with `pytest -q`"]),
            DomainFacts("general", ["The project is a Python CLI"]),
        ]
        extraction_call = scripted_llm.calls_of("general")[0]
        assert extraction_call["messages"] == [
            {"role": "user", "content": "Extract facts from this conversation:\n\nUser: hi"}
        ]
        assert extraction_call["max_tokens"] == 2048

    @pytest.mark.unit
    @pytest.mark.compression
    def test_failing_domain_does_not_affect_others(self):
        llm = ScriptedLLM(
            facts={"general": RuntimeError("rate limited"), "tool-usage": ["uses make"]},
            raw={"user-preferences": '```json\n["Prefers tabs"]\n```'},
        )

        result = extract_domain_facts("User: hi", llm)

        assert result == [
            DomainFacts("tool-usage", ["uses make"]),
            DomainFacts("user-preferences", ["Prefers tabs"]),
        ]

    @pytest.mark.unit
    @pytest.mark.compression
    def test_blank_transcript(self, scripted_llm):
        assert extract_domain_facts("  ", scripted_llm) == []
        assert scripted_llm.calls == []

    @pytest.mark.unit
    @pytest.mark.compression
    def test_extract_facts_flattens(self, scripted_llm):
        assert extract_facts("User: hi", scripted_llm) == [
            "Tests are run with `pytest -q`",
            "The project is a Python CLI",
        ]


class TestCompressHistory:
    """Summary boundary construction and fail-safe behaviour."""

    @pytest.mark.unit
    @pytest.mark.compression
    def test_compresses_old_turns(self, compressors, scripted_llm):
        cache = MagicMock()
        compressor = compressors(scripted_llm, cache=cache)
        history = _turns(5)
        snapshot = list(history)

        result = compressor.compress_history(history)
        compressor.wait_for_background()

        assert len(result) == 10
        assert result[0].role == Role.USER
        assert is_boundary_message(result[0].content)
        assert result[0].content.endswith("- User is building a CLI in Python\n- Tests run with pytest")
        assert result[1] == ConversationMessage.assistant(ACKNOWLEDGEMENT)
        assert result[2:] == history[2:]
        assert history == snapshot

        summary_call = scripted_llm.calls_of("summary")[0]
        assert summary_call["messages"][0]["content"] == (
            "Summarize this conversation:\n\nUser: question 0\nAssistant: answer 0"
        )
        assert cache.add_facts.call_args_list == [
            call(["Tests are run with `pytest -q`"], "compression", "tool-usage"),
            call(["The project is a Python CLI"], "compression", "general"),
        ]

    @pytest.mark.unit
    @pytest.mark.compression
    def test_nothing_to_compress(self, compressors, scripted_llm):
        compressor = compressors(scripted_llm)
        history = _turns(4)

        assert compressor.compress_history(history) is history
        assert scripted_llm.calls == []

    @pytest.mark.unit
    @pytest.mark.compression
    def test_custom_turns_to_keep(self, compressors, scripted_llm):
        compressor = compressors(scripted_llm)

        result = compressor.compress_history(_turns(5), recent_turns_to_keep=1)

        assert len(result) == 4

    @pytest.mark.unit
    @pytest.mark.compression
    @pytest.mark.parametrize("summary", [RuntimeError("api down"), "   "])
    def test_failed_or_empty_summary_keeps_history(self, compressors, summary):
        compressor = compressors(ScriptedLLM(summary=summary))
        history = _turns(5)

        assert compressor.compress_history(history) is history

    @pytest.mark.unit
    @pytest.mark.compression
    def test_summary_timeout_keeps_history(self, compressors):
        llm = ScriptedLLM(before_reply=lambda kind: time.sleep(0.5) if kind == "summary" else None)
        compressor = compressors(llm, llm_timeout=0.05)
        history = _turns(5)

        assert compressor.compress_history(history) is history

    @pytest.mark.unit
    @pytest.mark.compression
    def test_extraction_failure_does_not_block_summary(self, compressors):
        cache = MagicMock()
        failures = {
            domain: RuntimeError("bad") for domain in ("general", "tool-usage", "user-preferences")
        }
        llm = ScriptedLLM(summary="- ok", facts=failures)
        compressor = compressors(llm, cache=cache)

        result = compressor.compress_history(_turns(5))
        compressor.wait_for_background()

        assert len(result) == 10
        cache.add_facts.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.compression
    def test_storage_failure_is_only_logged(self, compressors, scripted_llm):
        cache = MagicMock()
        cache.add_facts.side_effect = RuntimeError("disk full")
        compressor = compressors(scripted_llm, cache=cache)

        result = compressor.compress_history(_turns(5))
        compressor.wait_for_background()

        assert len(result) == 10
        assert cache.add_facts.call_count == 2

    @pytest.mark.unit
    @pytest.mark.compression
    def test_no_extraction_without_cache_or_when_disabled(self, compressors, scripted_llm):
        compressors(scripted_llm).compress_history(_turns(5))
        compressors(scripted_llm, cache=MagicMock(), extract_facts=False).compress_history(_turns(5))

        assert len(scripted_llm.calls_of("summary")) == 2
        assert scripted_llm.calls_of("general") == []

    @pytest.mark.unit
    @pytest.mark.compression
    def test_summary_and_extraction_run_concurrently(self, compressors):
        # One summary call and three domain calls must all be in flight at once.
        barrier = threading.Barrier(4, timeout=5)
        llm = ScriptedLLM(
            summary="- concurrent",
            facts={"general": ["fact"]},
            before_reply=lambda kind: barrier.wait(),
        )
        compressor = compressors(llm, cache=MagicMock())

        result = compressor.compress_history(_turns(5))

        assert result[0].content.endswith("- concurrent")
