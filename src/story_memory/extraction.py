"""Fact extraction: story text in, events/characters/situation out."""

from __future__ import annotations

import logging
from typing import Any

from story_memory.llm import Message, TextService, is_budget_exceeded
from story_memory.models import EngineConfig, ExtractedFacts
from story_memory.repair import parse_json_object


logger = logging.getLogger(__name__)

# ~2000 tokens of input, leaving room for output on small-context models
MAX_TEXT_FOR_EXTRACTION = 8000

EXTRACTION_SYSTEM_PROMPT = (
    "You are an expert story analyst. Extract key information from story "
    "text and output ONLY valid JSON."
)


def truncate_tail(text: str, limit: int = MAX_TEXT_FOR_EXTRACTION) -> str:
    """Keep the last `limit` characters; the most recent text matters most."""
    if len(text) <= limit:
        return text
    return text[-limit:]


def build_extraction_messages(text: str, keywords: list[str]) -> list[Message]:
    """Build the chat messages for one extraction call."""
    keyword_context = ""
    if keywords:
        keyword_context = (
            "\nPay special attention to these tracked elements: "
            + ", ".join(keywords)
        )

    user_prompt = (
        "Analyze this story segment and extract key events worth remembering "
        f"for story continuity.{keyword_context}\n\n"
        f"STORY TEXT:\n{text}\n\n"
        "Extract:\n"
        "1. Key events (plot developments, character actions, important "
        "revelations, location changes)\n"
        "2. Character states (current status, goals, relationships for any "
        "named characters)\n"
        "3. Current situation (brief context of what's happening now)\n\n"
        "Respond with ONLY this JSON format, no other text:\n"
        '{"events":["event 1","event 2"],"characters":{"Name":"current state"},'
        '"situation":"brief current context"}'
    )
    return [
        {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


def coerce_facts(payload: dict[str, Any]) -> ExtractedFacts:
    """Map a parsed response onto ExtractedFacts, defaulting bad fields."""
    events: list[str] = []
    raw_events = payload.get("events")
    if isinstance(raw_events, list):
        events = [e.strip() for e in raw_events if isinstance(e, str) and e.strip()]

    characters: dict[str, str] = {}
    raw_characters = payload.get("characters")
    if isinstance(raw_characters, dict):
        for name, state in raw_characters.items():
            if state is None or not str(name).strip():
                continue
            characters[str(name).strip()] = state if isinstance(state, str) else str(state)

    situation = payload.get("situation")
    return ExtractedFacts(
        events=events,
        characters=characters,
        situation=situation.strip() if isinstance(situation, str) else "",
    )


async def extract_facts(
    service: TextService,
    text: str,
    keywords: list[str] | None = None,
    config: EngineConfig | None = None,
) -> ExtractedFacts:
    """Extract structured facts from story text.

    Args:
        service: Text-understanding service to call
        text: Story text; only the tail is sent when it is long
        keywords: Tracked elements to hint to the model
        config: Model and limits; defaults apply when omitted

    Returns:
        ExtractedFacts, empty when the call fails or the output is unusable.
        Never raises.
    """
    config = config or EngineConfig(db_path=":memory:")

    process_text = truncate_tail(text, config.max_extraction_chars)
    if len(process_text) < len(text):
        logger.info(
            "Text truncated from %d to %d chars for extraction",
            len(text),
            len(process_text),
        )

    messages = build_extraction_messages(process_text, keywords or [])

    try:
        content = await service.complete(
            messages,
            model=config.model,
            max_output_tokens=config.max_output_tokens,
            temperature=config.temperature,
        )
    except Exception as e:
        if is_budget_exceeded(e):
            logger.info("Token budget exceeded during extraction: %s", e)
        else:
            logger.exception("Error extracting events")
        return ExtractedFacts()

    payload = parse_json_object(content, fallback=None)
    if payload is None:
        logger.info("Could not parse extraction response, skipping extraction")
        return ExtractedFacts()
    return coerce_facts(payload)
