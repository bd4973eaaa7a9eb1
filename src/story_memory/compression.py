"""Compression of older events into fewer summary events."""

from __future__ import annotations

import logging
import math
import re

from story_memory.llm import Message, TextService, is_budget_exceeded
from story_memory.models import EngineConfig, Event, generate_event_id, now_ms


logger = logging.getLogger(__name__)

MIN_EVENTS_TO_COMPRESS = 3
MAX_RECENT_EVENTS = 3
RECENT_FRACTION = 0.3
EVENTS_PER_BULLET = 3

_BULLET_RE = re.compile(r"^[•\-]\s*")

COMPRESSION_SYSTEM_PROMPT = (
    "You are a concise summarizer. Compress story events into brief bullet "
    "points while preserving essential plot information."
)


def split_recent(events: list[Event]) -> tuple[list[Event], list[Event]]:
    """Split events into (older, recent); recent events are kept verbatim."""
    recent_count = min(MAX_RECENT_EVENTS, math.floor(len(events) * RECENT_FRACTION))
    if recent_count == 0:
        return list(events), []
    return events[:-recent_count], events[-recent_count:]


def max_bullets(older: list[Event]) -> int:
    return math.ceil(len(older) / EVENTS_PER_BULLET)


def build_compression_messages(older: list[Event]) -> list[Message]:
    """Build the chat messages asking for a condensed timeline."""
    older_texts = "\n• ".join(e.text for e in older)
    user_prompt = (
        "Condense these story events into a brief timeline. Combine similar "
        "events and remove redundancy. Keep the most important plot points.\n\n"
        f"EVENTS:\n• {older_texts}\n\n"
        f"Output {max_bullets(older)} brief bullet points maximum. "
        "Each bullet should be under 20 words.\n"
        "Format: Just the bullet points, one per line, starting with •"
    )
    return [
        {"role": "system", "content": COMPRESSION_SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


def parse_bullets(text: str) -> list[str]:
    """Extract bullet lines ('•' or '-') with the marker stripped."""
    bullets = []
    for line in text.splitlines():
        line = line.strip()
        if not line.startswith(("•", "-")):
            continue
        content = _BULLET_RE.sub("", line).strip()
        if content:
            bullets.append(content)
    return bullets


async def compress_events(
    service: TextService,
    events: list[Event],
    target_tokens: int,
    config: EngineConfig | None = None,
) -> list[Event]:
    """Summarize the older events, keeping the most recent ones verbatim.

    Args:
        service: Text-understanding service used for summarization
        events: Events in insertion order (oldest first)
        target_tokens: Token budget the compiled memory should fit in
        config: Model and limits; defaults apply when omitted

    Returns:
        compressed older events followed by the untouched recent events, or
        the original list unchanged when there is nothing to compress or the
        summarization fails.
    """
    if len(events) <= MIN_EVENTS_TO_COMPRESS:
        return events

    older, recent = split_recent(events)
    if not older or not recent:
        return events

    config = config or EngineConfig(db_path=":memory:")
    logger.info(
        "Compressing %d older events (keeping %d recent) toward %d tokens",
        len(older),
        len(recent),
        target_tokens,
    )

    try:
        content = await service.complete(
            build_compression_messages(older),
            model=config.model,
            max_output_tokens=config.max_output_tokens,
            temperature=config.temperature,
        )
    except Exception as e:
        if is_budget_exceeded(e):
            logger.info("Token budget exceeded during compression: %s", e)
        else:
            logger.exception("Error compressing events")
        return events

    bullets = parse_bullets(content)[: max_bullets(older)]
    if not bullets:
        logger.info("Compression response had no bullet points, keeping events")
        return events

    timestamp = older[0].timestamp or now_ms()
    compressed = [
        Event(
            id=generate_event_id(),
            timestamp=timestamp,
            text=text,
            importance=3,
            compressed=True,
        )
        for text in bullets
    ]
    return compressed + recent
