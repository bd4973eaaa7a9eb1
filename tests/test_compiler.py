"""Tests for memory compilation."""

from conftest import FixedTokenizer
from story_memory.compiler import compile_memory, needs_compression
from story_memory.models import CharacterState, Event, Settings


def test_empty_state_compiles_to_empty_string():
    assert compile_memory([], {}, "") == ""


def test_single_event_gives_only_timeline():
    events = [Event(id="e1", timestamp=1, text="Mara found the key")]

    assert compile_memory(events, {}, "") == "=== STORY TIMELINE ===\n• Mara found the key"


def test_sections_in_fixed_order():
    events = [
        Event(id="e1", timestamp=1, text="The ship sank"),
        Event(id="e2", timestamp=2, text="Mara swam ashore", compressed=True),
    ]
    characters = {
        "Mara": CharacterState(name="Mara", state="exhausted", last_updated=1),
        "Oren": CharacterState(name="Oren", state="missing", last_updated=2),
    }

    memory = compile_memory(events, characters, "Night on a strange beach.")

    assert memory == (
        "=== STORY TIMELINE ===\n"
        "• The ship sank\n"
        "• Mara swam ashore\n"
        "\n"
        "=== CURRENT SITUATION ===\n"
        "Night on a strange beach.\n"
        "\n"
        "=== KEY CHARACTERS ===\n"
        "Mara: exhausted\n"
        "Oren: missing"
    )


def test_situation_only():
    assert compile_memory([], {}, "Dawn.") == "=== CURRENT SITUATION ===\nDawn."


def test_compression_threshold():
    settings = Settings(token_limit=1000)

    assert needs_compression("memory", settings, FixedTokenizer(850))
    assert not needs_compression("memory", settings, FixedTokenizer(750))
    assert not needs_compression("memory", settings, FixedTokenizer(800))
