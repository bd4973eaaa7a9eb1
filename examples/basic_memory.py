"""Basic incremental memory example.

This example demonstrates:
- Appending story sections to a document
- Updating the memory after each generation
- Tracking keywords and tightening the token limit
- Rebuilding the memory from scratch with a full refresh

Requires OPENAI_API_KEY (or STORY_MEMORY_BASE_URL pointing at any
OpenAI-compatible endpoint).
"""

import asyncio
import logging

from story_memory import NarrativeMemoryEngine, EngineConfig


CHAPTERS = [
    "The storm broke over Harrow Keep as Mara climbed the tower stairs, "
    "her lantern held high against the dark. Somewhere below, Oren was "
    "still arguing with the gatekeeper.",
    "At the summit she found a sealed iron door, cold to the touch. The "
    "key her mother left her fit the lock, but it would not turn.",
    "Oren arrived breathless. 'The gatekeeper knows,' he said. 'He says "
    "the door was sealed the night your mother vanished.'",
]


async def main():
    logging.basicConfig(level=logging.INFO)

    # Initialize engine
    engine = NarrativeMemoryEngine(EngineConfig(db_path="story_memory.db"))

    try:
        pipeline = engine.pipeline("harrow-keep")
        await pipeline.update_settings(token_limit=800, tracked_keywords="Mara, Oren")

        # Each chapter stands in for one generation; the host would call
        # process_new_content from its generation-finished hook
        for chapter in CHAPTERS:
            engine.add_section("harrow-keep", chapter)
            result = await pipeline.process_new_content()
            print(f"[{result.status}] {result.message}")

        print("\n--- Memory ---")
        print(engine.get_memory("harrow-keep"))

        status = pipeline.status()
        print(f"\nTokens: {status.token_count} / {status.token_limit} ({status.percent_used}%)")

        # Start over from the full text
        result = await pipeline.force_refresh()
        print(f"\n[{result.status}] {result.message}")

    finally:
        engine.close()


if __name__ == "__main__":
    asyncio.run(main())
