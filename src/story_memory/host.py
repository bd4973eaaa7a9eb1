"""Host collaborator contracts: content, storage, memory sink, notices."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, Sequence

if TYPE_CHECKING:
    from story_memory.engine import NarrativeMemoryEngine


notice_logger = logging.getLogger("story_memory.notices")

_NOTICE_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class ContentSource(Protocol):
    """Ordered, append-only text sections of one document."""

    def section_ids(self) -> Sequence[str | int]:
        """Section identifiers in document order."""
        ...

    def scan_sections(self) -> Sequence[tuple[str | int, str]]:
        """(section id, text) pairs in document order."""
        ...


class KeyValueStore(Protocol):
    """String key-value persistence scoped to one document."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemorySink(Protocol):
    """Destination of the compiled memory text."""

    def set_memory(self, text: str) -> None: ...

    def get_memory(self) -> str: ...


class Notifier(Protocol):
    """User-visible notices (toasts in an interactive host)."""

    def notify(self, message: str, level: str = "info") -> None: ...


class LoggingNotifier:
    """Notifier that writes notices to the 'story_memory.notices' logger."""

    def notify(self, message: str, level: str = "info") -> None:
        notice_logger.log(_NOTICE_LEVELS.get(level, logging.INFO), message)


class StoryDocument:
    """One document of a NarrativeMemoryEngine, seen through the host protocols."""

    def __init__(self, engine: NarrativeMemoryEngine, document_id: str):
        self.engine = engine
        self.document_id = document_id

    def section_ids(self) -> list[int]:
        return self.engine.section_ids(self.document_id)

    def scan_sections(self) -> list[tuple[int, str]]:
        return self.engine.scan_sections(self.document_id)

    def get(self, key: str) -> str | None:
        return self.engine.storage_get(self.document_id, key)

    def set(self, key: str, value: str) -> None:
        self.engine.storage_set(self.document_id, key, value)

    def set_memory(self, text: str) -> None:
        self.engine.set_memory(self.document_id, text)

    def get_memory(self) -> str:
        return self.engine.get_memory(self.document_id)
