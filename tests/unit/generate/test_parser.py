"""Tests for the LLM response parser."""

from __future__ import annotations

import json

import pytest

from codeshift.errors import GenerationFatal
from codeshift.generate.parser import (
    decode_newlines,
    extract_json_object,
    parse_response,
    strip_reasoning,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_strip_reasoning_closed_blocks():
    raw = "<reasoning>plan</reasoning>\n<THINK>more</THINK><thought>x</thought>code()"
    assert strip_reasoning(raw) == "code()"


def test_strip_reasoning_unclosed_block():
    assert strip_reasoning("before <think>never closed\nstill thinking") == "before"


def test_strip_reasoning_empty():
    assert strip_reasoning("") == ""


def test_extract_json_object_ignores_braces_in_strings():
    assert extract_json_object('noise {"k": "}"} tail') == '{"k": "}"}'
    assert extract_json_object('{"k": "a\\"}"} x') == '{"k": "a\\"}"}'


def test_extract_json_object_nested():
    assert extract_json_object('x {"a": {"b": 1}} {"c": 2}') == '{"a": {"b": 1}}'


@pytest.mark.parametrize("text", ["no braces here", '{"unbalanced": 1', ""])
def test_extract_json_object_none(text):
    assert extract_json_object(text) is None


def test_decode_newlines():
    assert decode_newlines("a\r\nb") == "a\nb"
    assert decode_newlines("a\\nb") == "a\nb"
    assert decode_newlines("a\\r\\nb") == "a\nb"


def test_decode_newlines_keeps_literals_in_multiline_code():
    code = 'x = "a\\nb"\ny = 2'
    assert decode_newlines(code) == code


# ---------------------------------------------------------------------------
# Parsing order
# ---------------------------------------------------------------------------


def test_json_fence():
    raw = (
        "Here is the result:\n```json\n"
        '{"migratedCode": "let a: number = 1;", "summary": "Typed it", "changes": ["added types"]}'
        "\n```\nThanks."
    )
    parsed = parse_response(raw)
    assert parsed.method == "json_fence"
    assert parsed.structured
    assert parsed.code == "let a: number = 1;"
    assert parsed.summary == "Typed it"
    assert parsed.changes == ["added types"]


def test_double_encoded():
    raw = json.dumps('```json\n{"migratedCode": "x = 1", "summary": "s"}\n```')
    parsed = parse_response(raw)
    assert parsed.method == "double_encoded"
    assert parsed.code == "x = 1"


def test_whole_response_json():
    parsed = parse_response(json.dumps({"migratedCode": "a\nb", "warnings": "careful"}))
    assert parsed.method == "json"
    assert parsed.code == "a\nb"
    assert parsed.warnings == ["careful"]


def test_embedded_json_object():
    raw = 'Sure! {"migratedCode": "x()", "summary": "{braces}"} hope this helps'
    parsed = parse_response(raw)
    assert parsed.method == "json"
    assert parsed.code == "x()"
    assert parsed.summary == "{braces}"


def test_code_fence():
    parsed = parse_response("Here you go\n```python\nprint(1)\n```\n")
    assert parsed.method == "code_fence"
    assert not parsed.structured
    assert parsed.code == "print(1)"


def test_json_fence_without_accepted_keys_is_code():
    parsed = parse_response('```json\n{"foo": 1}\n```')
    assert parsed.method == "code_fence"
    assert parsed.code == '{"foo": 1}'


def test_raw():
    parsed = parse_response("const a = 1;")
    assert parsed.method == "raw"
    assert parsed.code == "const a = 1;"


def test_reasoning_removed_before_parsing():
    parsed = parse_response("<think>let me see</think>const a = 1;")
    assert parsed.code == "const a = 1;"


# ---------------------------------------------------------------------------
# Object contents
# ---------------------------------------------------------------------------


def test_files_only_answer():
    raw = json.dumps(
        {
            "files": [
                {"filename": "a.js", "migratedFilename": "a.ts", "content": "let a: number = 1;"},
                "not a file",
                {"filename": "b.js", "content": None},
            ]
        }
    )
    parsed = parse_response(raw)
    assert parsed.code == "let a: number = 1;"
    assert parsed.files == [
        {"filename": "a.js", "migratedFilename": "a.ts", "content": "let a: number = 1;"}
    ]


def test_inner_object_unwrapped_once():
    inner = json.dumps({"migratedCode": "inner()", "summary": "inner summary"})
    raw = json.dumps({"migratedCode": inner, "summary": "outer", "changes": ["c"]})
    parsed = parse_response(raw)
    assert parsed.code == "inner()"
    assert parsed.summary == "inner summary"
    assert parsed.changes == ["c"]


def test_inner_object_without_known_keys_is_code():
    raw = json.dumps({"migratedCode": '{"name": "config"}'})
    assert parse_response(raw).code == '{"name": "config"}'


def test_escaped_newlines_decoded():
    parsed = parse_response(json.dumps({"migratedCode": "a\\nb"}))
    assert parsed.code == "a\nb"


def test_dict_list_items_described():
    raw = json.dumps(
        {
            "migratedCode": "x",
            "recommendations": [{"recommendation": "use y"}, {"other": 1}, "plain"],
        }
    )
    assert parse_response(raw).recommendations == ["use y", '{"other": 1}', "plain"]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("raw", ["", "   ", "<think>only thinking"])
def test_empty_response(raw):
    with pytest.raises(GenerationFatal) as excinfo:
        parse_response(raw)
    assert excinfo.value.kind == "empty"


def test_object_without_code():
    with pytest.raises(GenerationFatal) as excinfo:
        parse_response(json.dumps({"migratedCode": "  ", "files": []}))
    assert excinfo.value.kind == "empty"


def test_error_object_is_invalid():
    with pytest.raises(GenerationFatal, match="cannot migrate") as excinfo:
        parse_response(json.dumps({"error": "unsupported", "reason": "cannot migrate"}))
    assert excinfo.value.kind == "invalid"
