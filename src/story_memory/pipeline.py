"""Memory pipeline: incremental updates and full refresh for one document."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Awaitable, Callable

from story_memory.chunking import split_into_windows
from story_memory.compiler import compile_memory, needs_compression
from story_memory.compression import compress_events
from story_memory.extraction import extract_facts
from story_memory.host import ContentSource, KeyValueStore, LoggingNotifier, MemorySink, Notifier
from story_memory.llm import TextService
from story_memory.models import (
    CharacterState,
    CycleResult,
    EngineConfig,
    Event,
    ExtractedFacts,
    MemoryStatus,
    NarrativeState,
    Settings,
    generate_event_id,
    now_ms,
)
from story_memory.state import load_state, save_state, update_settings
from story_memory.tokens import Tokenizer, count_tokens


logger = logging.getLogger(__name__)

STATUS_EVENT_COUNT = 10


class MemoryPipeline:
    """Keeps one document's memory in step with its content.

    Every operation reloads the persisted state, mutates a local copy and
    writes it back in full. Operations that write state are serialized by a
    per-instance lock; an incremental cycle that finds the lock held is
    dropped rather than queued.
    """

    def __init__(
        self,
        content: ContentSource,
        store: KeyValueStore,
        sink: MemorySink,
        service: TextService,
        tokenizer: Tokenizer | None = None,
        notifier: Notifier | None = None,
        config: EngineConfig | None = None,
        clock: Callable[[], int] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        self.content = content
        self.store = store
        self.sink = sink
        self.service = service
        self.tokenizer = tokenizer
        self.notifier = notifier or LoggingNotifier()
        self.config = config or EngineConfig(db_path=":memory:")
        self._now = clock or now_ms
        self._sleep = sleep or asyncio.sleep
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        """Whether an operation currently holds the lock."""
        return self._lock.locked()

    # -------------------------------------------------------------------------
    # Incremental Updates
    # -------------------------------------------------------------------------

    async def process_new_content(self) -> CycleResult:
        """Fold content added since the last cycle into the memory.

        Intended as the handler of the host's generation-finished hook.
        """
        if not load_state(self.store).settings.auto_update:
            return CycleResult("disabled", "Auto-update is disabled")

        if self._lock.locked():
            logger.info("Already processing, skipping")
            return CycleResult("busy", "Already processing")

        async with self._lock:
            try:
                return await self._run_cycle()
            except Exception:
                logger.exception("Error processing content")
                self.notifier.notify("Memory update failed", "error")
                return CycleResult("failed", "Memory update failed")

    async def _run_cycle(self) -> CycleResult:
        state = load_state(self.store)

        section_ids = list(self.content.section_ids())
        if not section_ids:
            return CycleResult("skipped", "No content")

        new_text = self._collect_new_text(state.last_processed_section_id)

        # Progress is recorded even when the delta is too small to extract
        state.last_processed_section_id = section_ids[-1]

        if len(new_text.strip()) < self.config.min_new_text:
            save_state(self.store, state)
            logger.debug("Only %d new chars, skipping extraction", len(new_text.strip()))
            return CycleResult(
                "insufficient", "Not enough new content", event_count=len(state.events)
            )

        facts = await extract_facts(
            self.service, new_text, state.settings.tracked_keywords, self.config
        )
        self._merge_facts(state, facts)
        save_state(self.store, state)

        memory = await self.compile_and_publish(state)
        self.notifier.notify("Memory updated", "success")
        logger.info(
            "Memory updated: +%d events, %d characters",
            len(facts.events),
            len(facts.characters),
        )
        return CycleResult("updated", "Memory updated", memory, len(state.events))

    def _collect_new_text(self, marker: str | int | None) -> str:
        """Concatenate the text of every section after `marker`."""
        started = marker is None
        parts = []
        for section_id, text in self.content.scan_sections():
            if started:
                if text:
                    parts.append(text + "\n")
            elif section_id == marker:
                started = True
        return "".join(parts)

    def _merge_facts(
        self,
        state: NarrativeState,
        facts: ExtractedFacts,
        timestamp: int | None = None,
        event_limit: int | None = None,
        adopt_situation: bool = True,
    ) -> None:
        """Append events, overwrite character states and the situation."""
        now = self._now()
        timestamp = now if timestamp is None else timestamp
        event_texts = facts.events if event_limit is None else facts.events[:event_limit]

        for text in event_texts:
            state.events.append(
                Event(
                    id=generate_event_id(now),
                    timestamp=timestamp,
                    text=text,
                    importance=3,
                    compressed=False,
                )
            )

        for name, character_state in facts.characters.items():
            state.characters[name] = CharacterState(
                name=name, state=character_state, last_updated=now
            )

        if adopt_situation and facts.situation:
            state.current_situation = facts.situation

    # -------------------------------------------------------------------------
    # Full Refresh
    # -------------------------------------------------------------------------

    async def force_refresh(self) -> CycleResult:
        """Rebuild the memory from the document's entire content.

        Waits for an in-flight cycle instead of dropping the request; gives
        up after config.refresh_lock_timeout seconds.
        """
        try:
            await asyncio.wait_for(
                self._lock.acquire(), timeout=self.config.refresh_lock_timeout
            )
        except asyncio.TimeoutError:
            logger.error("Refresh timed out waiting for the running update")
            self.notifier.notify("Memory is busy, try again later", "error")
            return CycleResult("busy", "Timed out waiting for the running update")

        try:
            return await self._run_refresh()
        except Exception:
            logger.exception("Error during refresh")
            self.notifier.notify("Refresh failed - see logs", "error")
            return CycleResult("failed", "Refresh failed")
        finally:
            self._lock.release()

    async def _run_refresh(self) -> CycleResult:
        state = load_state(self.store)
        state.clear()

        self.notifier.notify("Refreshing memory...", "info")

        full_text = "".join(
            text + "\n" for _, text in self.content.scan_sections() if text
        )
        if len(full_text.strip()) < self.config.min_new_text:
            self.notifier.notify("Not enough content to analyze", "warning")
            return CycleResult("insufficient", "Not enough content to analyze")

        windows = split_into_windows(
            full_text, self.config.window_size, self.config.window_overlap
        )
        window_count = len(windows)
        if window_count > 1:
            logger.info("Processing %d windows for full refresh", window_count)

        events_per_window = (
            math.ceil(self.config.refresh_event_budget / window_count) + 2
        )
        started_at = self._now()

        for i, window in enumerate(windows):
            if i > 0:
                await self._sleep(self.config.window_delay)

            try:
                facts = await extract_facts(
                    self.service, window, state.settings.tracked_keywords, self.config
                )
            except Exception:
                logger.info(
                    "Window %d/%d failed, continuing", i + 1, window_count, exc_info=True
                )
                continue

            # Earlier windows get older timestamps
            self._merge_facts(
                state,
                facts,
                timestamp=started_at - (window_count - i) * 1000,
                event_limit=events_per_window,
                adopt_situation=(i == window_count - 1),
            )

        section_ids = list(self.content.section_ids())
        if section_ids:
            state.last_processed_section_id = section_ids[-1]

        save_state(self.store, state)
        memory = await self.compile_and_publish(state)

        message = f"Memory refreshed ({len(state.events)} events)"
        self.notifier.notify(message, "success")
        return CycleResult("refreshed", message, memory, len(state.events))

    # -------------------------------------------------------------------------
    # Compilation & Maintenance
    # -------------------------------------------------------------------------

    async def compile_and_publish(self, state: NarrativeState) -> str:
        """Compile state, compressing first when over budget, and publish it."""
        memory = compile_memory(state.events, state.characters, state.current_situation)

        if needs_compression(memory, state.settings, self.tokenizer):
            compressed = await compress_events(
                self.service, state.events, state.settings.token_limit, self.config
            )
            if compressed is not state.events:
                state.events = compressed
                save_state(self.store, state)
                memory = compile_memory(
                    state.events, state.characters, state.current_situation
                )

        self.sink.set_memory(memory)
        return memory

    async def clear_memory(self) -> CycleResult:
        """Forget all derived facts and the position marker."""
        async with self._lock:
            state = load_state(self.store)
            state.clear()
            state.last_processed_section_id = None
            save_state(self.store, state)
            self.sink.set_memory("")

        self.notifier.notify("Memory cleared", "info")
        return CycleResult("cleared", "Memory cleared", "", 0)

    async def update_settings(self, **changes) -> Settings:
        """Validate and persist settings changes.

        Raises:
            ValueError: on unknown keys or invalid values
        """
        async with self._lock:
            return update_settings(self.store, **changes)

    def status(self) -> MemoryStatus:
        """Token usage and recent events of the published memory."""
        state = load_state(self.store)
        memory = self.sink.get_memory() or ""
        recent = [
            f"{'[C]' if e.compressed else '>'} {e.text}"
            for e in reversed(state.events[-STATUS_EVENT_COUNT:])
        ]
        return MemoryStatus(
            token_count=count_tokens(memory, self.tokenizer),
            token_limit=state.settings.token_limit,
            event_count=len(state.events),
            recent_events=recent,
            settings=state.settings,
        )
