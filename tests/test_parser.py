"""
Unit tests for log parsing.

Tests format detection precedence, field extraction, and input shapes.
"""

import json
from datetime import datetime

import pytest

from tokenwise.core.models import UsageRecord
from tokenwise.core.parser import (
    LogFormat,
    ParseError,
    detect_format,
    parse_log,
    parse_record,
)

NEWAPI_RECORD = {
    "timestamp": "2025-01-01T10:00:00.000Z",
    "model": "claude-sonnet-4-6",
    "prompt_tokens": 1000,
    "completion_tokens": 200,
    "cached_tokens": 300,
    "cache_creation_tokens": 50,
}

OPENAI_RECORD = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "created": 1700000000,
    "model": "gpt-4o",
    "choices": [{"index": 0, "message": {"role": "assistant", "content": "hi"}}],
    "usage": {
        "prompt_tokens": 1000,
        "completion_tokens": 200,
        "total_tokens": 1200,
        "prompt_tokens_details": {"cached_tokens": 300},
    },
}

ANTHROPIC_RECORD = {
    "id": "msg_123",
    "type": "message",
    "role": "assistant",
    "model": "claude-sonnet-4-6",
    "content": [{"type": "text", "text": "hi"}],
    "timestamp": "2025-01-01T10:00:00.000Z",
    "usage": {
        "input_tokens": 1000,
        "output_tokens": 200,
        "cache_read_input_tokens": 300,
        "cache_creation_input_tokens": 50,
    },
}


class TestDetectFormat:
    """Test format detection and its precedence."""

    def test_anthropic_by_type(self):
        """Verify type == message means Anthropic."""
        assert detect_format({"type": "message"}) == LogFormat.ANTHROPIC

    def test_anthropic_by_text_content(self):
        """Verify a leading text content block means Anthropic."""
        assert detect_format({"content": [{"type": "text", "text": "x"}]}) == LogFormat.ANTHROPIC

    def test_anthropic_by_usage_and_claude_model(self):
        """Verify usage.input_tokens with a claude model means Anthropic."""
        raw = {"model": "claude-3-haiku", "usage": {"input_tokens": 10}}
        assert detect_format(raw) == LogFormat.ANTHROPIC

    def test_input_tokens_without_claude_model_is_newapi(self):
        """Verify usage.input_tokens alone does not imply Anthropic."""
        raw = {"model": "llama-3", "usage": {"input_tokens": 10}}
        assert detect_format(raw) == LogFormat.NEWAPI

    def test_openai_by_object(self):
        """Verify object == chat.completion means OpenAI."""
        assert detect_format({"object": "chat.completion"}) == LogFormat.OPENAI

    def test_openai_by_choices(self):
        """Verify a choices field means OpenAI, even when empty."""
        assert detect_format({"choices": []}) == LogFormat.OPENAI

    def test_openai_by_nested_prompt_tokens(self):
        """Verify nested usage.prompt_tokens without a top-level one means OpenAI."""
        assert detect_format({"usage": {"prompt_tokens": 5}}) == LogFormat.OPENAI

    def test_top_level_prompt_tokens_wins_over_nested(self):
        """Verify a top-level prompt_tokens field means NewAPI."""
        raw = {"prompt_tokens": 5, "usage": {"prompt_tokens": 5}}
        assert detect_format(raw) == LogFormat.NEWAPI

    def test_newapi_by_model(self):
        """Verify a bare model field means NewAPI."""
        assert detect_format({"model": "gpt-4o"}) == LogFormat.NEWAPI

    def test_anthropic_checked_before_openai(self):
        """Verify overlapping shapes resolve in precedence order."""
        raw = {"type": "message", "choices": [], "object": "chat.completion"}
        assert detect_format(raw) == LogFormat.ANTHROPIC

    def test_unrecognized_shape(self):
        """Verify unrecognized records are reported as unknown."""
        assert detect_format({"foo": "bar"}) == LogFormat.UNKNOWN

    def test_full_provider_records(self):
        """Verify realistic provider payloads are detected."""
        assert detect_format(NEWAPI_RECORD) == LogFormat.NEWAPI
        assert detect_format(OPENAI_RECORD) == LogFormat.OPENAI
        assert detect_format(ANTHROPIC_RECORD) == LogFormat.ANTHROPIC


class TestParseRecord:
    """Test per-format field extraction."""

    def test_newapi_fields(self):
        """Verify NewAPI fields are copied directly."""
        record = parse_record(NEWAPI_RECORD)
        assert record == UsageRecord(
            timestamp="2025-01-01T10:00:00.000Z",
            model="claude-sonnet-4-6",
            prompt_tokens=1000,
            completion_tokens=200,
            cached_tokens=300,
            cache_creation_tokens=50,
        )

    def test_newapi_created_at_fallback(self):
        """Verify created_at is used when timestamp is missing."""
        record = parse_record({"model": "gpt-4o", "created_at": "2025-02-03T04:05:06Z"})
        assert record.timestamp == "2025-02-03T04:05:06Z"

    def test_openai_fields(self):
        """Verify OpenAI usage and epoch timestamp extraction."""
        record = parse_record(OPENAI_RECORD)
        assert record.timestamp == "2023-11-14T22:13:20.000Z"
        assert record.model == "gpt-4o"
        assert record.prompt_tokens == 1000
        assert record.completion_tokens == 200
        assert record.cached_tokens == 300
        assert record.cache_creation_tokens == 0

    def test_openai_timestamp_fallback(self):
        """Verify OpenAI records without created use the timestamp field."""
        record = parse_record({"object": "chat.completion", "timestamp": "2025-03-01T00:00:00Z"})
        assert record.timestamp == "2025-03-01T00:00:00Z"

    def test_anthropic_fields(self):
        """Verify Anthropic usage extraction."""
        record = parse_record(ANTHROPIC_RECORD)
        assert record.prompt_tokens == 1000
        assert record.completion_tokens == 200
        assert record.cached_tokens == 300
        assert record.cache_creation_tokens == 50
        assert record.timestamp == "2025-01-01T10:00:00.000Z"

    def test_unknown_record_normalized_with_defaults(self):
        """Verify unrecognized records are kept with zeroed tokens."""
        record = parse_record({"foo": "bar"})
        assert record.model == "unknown"
        assert record.prompt_tokens == 0
        assert record.completion_tokens == 0
        assert record.cached_tokens == 0
        assert record.cache_creation_tokens == 0
        assert record.timestamp.endswith("Z")
        datetime.fromisoformat(record.timestamp.replace("Z", "+00:00"))

    def test_invalid_token_values_normalize(self):
        """Verify invalid token counts become non-negative ints."""
        record = parse_record({
            "model": "gpt-4o",
            "prompt_tokens": "42",
            "completion_tokens": -5,
            "cached_tokens": "abc",
            "cache_creation_tokens": None,
        })
        assert record.prompt_tokens == 42
        assert record.completion_tokens == 0
        assert record.cached_tokens == 0
        assert record.cache_creation_tokens == 0

    def test_float_and_bool_tokens(self):
        """Verify floats truncate and booleans are ignored."""
        record = parse_record({"model": "gpt-4o", "prompt_tokens": 12.7, "completion_tokens": True})
        assert record.prompt_tokens == 12
        assert record.completion_tokens == 0

    def test_empty_model_defaults_to_unknown(self):
        """Verify blank model names become unknown."""
        assert parse_record({"model": "  ", "prompt_tokens": 1}).model == "unknown"

    def test_shapes_normalize_to_same_tokens(self):
        """Verify all three shapes agree on token counts."""
        newapi = parse_record(NEWAPI_RECORD)
        openai = parse_record(OPENAI_RECORD)
        anthropic = parse_record(ANTHROPIC_RECORD)

        for record in (openai, anthropic):
            assert record.prompt_tokens == newapi.prompt_tokens
            assert record.completion_tokens == newapi.completion_tokens
            assert record.cached_tokens == newapi.cached_tokens
        assert anthropic.cache_creation_tokens == newapi.cache_creation_tokens
        # OpenAI logs carry no cache-write accounting
        assert openai.cache_creation_tokens == 0


class TestParseLog:
    """Test accepted input shapes and error handling."""

    def test_json_array(self):
        """Verify a JSON array parses into one record per entry."""
        records = parse_log(json.dumps([NEWAPI_RECORD, OPENAI_RECORD, ANTHROPIC_RECORD]))
        assert [r.model for r in records] == ["claude-sonnet-4-6", "gpt-4o", "claude-sonnet-4-6"]

    def test_json_lines_with_blank_lines(self):
        """Verify newline-delimited JSON is accepted."""
        text = "\n".join([json.dumps(NEWAPI_RECORD), "", json.dumps(OPENAI_RECORD), "   "])
        records = parse_log(text)
        assert len(records) == 2
        assert records[1].model == "gpt-4o"

    def test_single_object(self):
        """Verify a single object is wrapped into a list."""
        records = parse_log(json.dumps(NEWAPI_RECORD))
        assert len(records) == 1

    def test_decoded_data(self):
        """Verify already-decoded lists and dicts are accepted."""
        assert len(parse_log([NEWAPI_RECORD, OPENAI_RECORD])) == 2
        assert len(parse_log(NEWAPI_RECORD)) == 1

    def test_bytes_input(self):
        """Verify raw bytes are decoded."""
        assert len(parse_log(json.dumps([NEWAPI_RECORD]).encode("utf-8"))) == 1

    def test_byte_order_mark_ignored(self):
        """Verify a leading UTF-8 BOM does not break parsing."""
        text = "\ufeff" + json.dumps([NEWAPI_RECORD])
        assert len(parse_log(text)) == 1
        assert len(parse_log(text.encode("utf-8"))) == 1
        assert len(parse_log("\ufeff" + json.dumps(NEWAPI_RECORD) + "\n" + json.dumps(OPENAI_RECORD))) == 2

    def test_invalid_utf8_bytes_raise_parse_error(self):
        """Verify undecodable bytes are reported as a ParseError."""
        with pytest.raises(ParseError, match="not valid UTF-8"):
            parse_log(b"\xff\xfe[")

    def test_empty_input(self):
        """Verify empty text yields no records."""
        assert parse_log("") == []
        assert parse_log("  \n ") == []

    def test_invalid_text_raises_parse_error(self):
        """Verify text that is neither JSON nor JSON lines is rejected."""
        with pytest.raises(ParseError) as exc_info:
            parse_log("this is not json")
        assert exc_info.value.line == 1

    def test_invalid_json_line_reports_line_number(self):
        """Verify the failing line is reported."""
        text = json.dumps(NEWAPI_RECORD) + "\n{broken"
        with pytest.raises(ParseError) as exc_info:
            parse_log(text)
        assert exc_info.value.line == 2

    def test_non_object_entry_raises_parse_error(self):
        """Verify entries that are not objects are rejected."""
        with pytest.raises(ParseError, match="Log entry 2 is not a JSON object"):
            parse_log(json.dumps([NEWAPI_RECORD, 42]))

    def test_parse_error_is_value_error(self):
        """Verify callers can catch ParseError as ValueError."""
        with pytest.raises(ValueError):
            parse_log("{nope")
