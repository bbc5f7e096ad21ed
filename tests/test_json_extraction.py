"""Tests for pulling the JSON object out of free-form replies."""

import pytest

from catalog_enricher.errors import GenerationError
from catalog_enricher.llm.json_extraction import extract_json_block, parse_json_object


class TestExtractJsonBlock:
    def test_plain_object(self):
        assert extract_json_block('{"a": "1"}') == '{"a": "1"}'

    def test_markdown_fence(self):
        text = 'Here you go:\n```json\n{"a": "1"}\n```\nAnything else?'
        assert extract_json_block(text) == '{"a": "1"}'

    def test_bare_fence(self):
        assert extract_json_block('```\n{"a": "1"}\n```') == '{"a": "1"}'

    def test_prose_around_object(self):
        assert extract_json_block('Sure! {"a": "1"} Hope that helps.') == '{"a": "1"}'

    def test_first_balanced_block_only(self):
        assert extract_json_block('{"a": "1"} and {"b": "2"}') == '{"a": "1"}'

    def test_nested_objects(self):
        text = '{"a": {"b": {"c": "d"}}, "e": "f"}'
        assert extract_json_block(text) == text

    def test_braces_inside_strings_are_ignored(self):
        text = '{"a": "use {curly} braces", "b": "}"}'
        assert extract_json_block(text) == text

    def test_escaped_quotes(self):
        text = '{"a": "say \\"hi\\" {"}'
        assert extract_json_block(text) == text

    def test_no_object(self):
        assert extract_json_block("I don't know.") is None
        assert extract_json_block("") is None

    def test_truncated_object(self):
        assert extract_json_block('{"a": "1", "b": ') is None


class TestParseJsonObject:
    def test_returns_dict(self):
        assert parse_json_object('Result: {"score": 86.4, "ok": true}') == {"score": 86.4, "ok": True}

    def test_missing_block_raises(self):
        with pytest.raises(GenerationError, match="No JSON object"):
            parse_json_object("no json here", model="gpt-4o")

    def test_invalid_json_raises(self):
        with pytest.raises(GenerationError, match="Invalid JSON"):
            parse_json_object("{'single': 'quotes'}")

    def test_error_keeps_raw_text(self):
        with pytest.raises(GenerationError) as exc_info:
            parse_json_object("nothing", model="gpt-4o")
        assert exc_info.value.raw_text == "nothing"
        assert exc_info.value.model == "gpt-4o"
