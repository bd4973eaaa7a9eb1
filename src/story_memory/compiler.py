"""Rendering narrative state into the bounded memory text."""

from __future__ import annotations

from story_memory.models import CharacterState, Event, Settings
from story_memory.tokens import Tokenizer, count_tokens


TIMELINE_HEADER = "=== STORY TIMELINE ==="
SITUATION_HEADER = "=== CURRENT SITUATION ==="
CHARACTERS_HEADER = "=== KEY CHARACTERS ==="


def compile_memory(
    events: list[Event],
    characters: dict[str, CharacterState],
    situation: str,
) -> str:
    """Render timeline, situation and characters, omitting empty sections."""
    sections = []

    if events:
        timeline = "\n".join(f"• {e.text}" for e in events)
        sections.append(f"{TIMELINE_HEADER}\n{timeline}")

    if situation:
        sections.append(f"{SITUATION_HEADER}\n{situation}")

    if characters:
        lines = "\n".join(f"{name}: {c.state}" for name, c in characters.items())
        sections.append(f"{CHARACTERS_HEADER}\n{lines}")

    return "\n\n".join(sections)


def needs_compression(
    text: str,
    settings: Settings,
    tokenizer: Tokenizer | None = None,
) -> bool:
    """Whether compiled text exceeds the compression threshold."""
    return count_tokens(text, tokenizer) > settings.compression_budget
