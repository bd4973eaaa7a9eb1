"""Tests for JSON recovery from raw model output."""

import json

from story_memory.repair import find_json_span, parse_json_object, repair_json, strip_code_fences


FALLBACK = {"events": [], "characters": {}, "situation": ""}


def test_parses_valid_object():
    text = '{"events":["a"],"characters":{},"situation":"x"}'
    assert parse_json_object(text, FALLBACK) == {
        "events": ["a"],
        "characters": {},
        "situation": "x",
    }


def test_ignores_surrounding_prose():
    text = 'Sure! Here is the JSON:\n{"situation": "calm"}\nHope this helps.'
    assert parse_json_object(text, FALLBACK) == {"situation": "calm"}


def test_strips_code_fences():
    text = '```json\n{"situation": "calm"}\n```'
    assert strip_code_fences(text) == '{"situation": "calm"}'
    assert parse_json_object(text, FALLBACK) == {"situation": "calm"}


def test_no_object_returns_fallback():
    assert parse_json_object("I cannot help with that.", FALLBACK) is FALLBACK
    assert parse_json_object("", FALLBACK) is FALLBACK


def test_non_object_returns_fallback():
    assert parse_json_object("[1, 2, 3]", FALLBACK) is FALLBACK


def test_span_runs_to_end_when_unclosed():
    assert find_json_span('noise {"events":["a"') == '{"events":["a"'
    assert find_json_span('a {"x": 1} b') == '{"x": 1}'


def test_repairs_unterminated_string_in_array():
    text = '{"events":["The ship sank","Mara swam ashore'
    assert parse_json_object(text, FALLBACK) == {
        "events": ["The ship sank", "Mara swam ashore"]
    }


def test_repairs_missing_outer_brace():
    # The span ends at the last '}', dropping the cut-off situation
    text = '{"events":["a","b"],"characters":{"X":"y"},"situation":"cal'
    assert parse_json_object(text, FALLBACK) == {
        "events": ["a", "b"],
        "characters": {"X": "y"},
    }


def test_repair_drops_trailing_comma():
    assert repair_json('{"events":["a",') == '{"events":["a"]}'


def test_repair_closes_nested_object():
    text = '{"characters":{"Mara":"wounded","Oren":"fled'
    assert parse_json_object(text, FALLBACK) == {
        "characters": {"Mara": "wounded", "Oren": "fled"}
    }


def test_unrepairable_returns_fallback():
    assert parse_json_object('{"events":["a"], "situation":', FALLBACK) is FALLBACK


def test_truncation_never_raises():
    """Any prefix after the opening brace parses to an object or falls back."""
    full = json.dumps(
        {
            "events": ["Mara reached the tower", "The lantern went out"],
            "characters": {"Mara": "afraid, determined", "Oren": "missing"},
            "situation": "Mara waits in the dark tower room.",
        }
    )
    for cut in range(1, len(full) + 1):
        result = parse_json_object(full[:cut], FALLBACK)
        assert result is FALLBACK or isinstance(result, dict)
