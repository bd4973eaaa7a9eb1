"""Data models for Story Memory."""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field


TOKEN_LIMIT_MIN = 500
TOKEN_LIMIT_MAX = 2000
DEFAULT_COMPRESSION_THRESHOLD = 0.8


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_event_id(timestamp: int | None = None) -> str:
    """Build a unique event id of the form ``evt_<ms>_<suffix>``."""
    ms = now_ms() if timestamp is None else timestamp
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"evt_{ms}_{suffix}"


@dataclass
class EngineConfig:
    """Configuration for NarrativeMemoryEngine."""

    db_path: str
    model: str = "gpt-4o-mini"
    base_url: str | None = None  # any OpenAI-compatible endpoint
    request_timeout: float = 60.0  # seconds per service call
    service_backend: str = "openai"
    tokenizer_backend: str = "tiktoken"  # "tiktoken" | "heuristic"
    max_extraction_chars: int = 8000
    max_output_tokens: int = 150
    temperature: float = 0.3
    min_new_text: int = 50
    window_size: int = 6000
    window_overlap: int = 1000
    window_delay: float = 1.0  # seconds between refresh windows
    refresh_event_budget: int = 10
    refresh_lock_timeout: float = 120.0


@dataclass
class Event:
    """A single extracted fact about story progress."""

    id: str
    timestamp: int
    text: str
    importance: int = 3  # 1-5
    compressed: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "text": self.text,
            "importance": self.importance,
            "compressed": self.compressed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Event:
        timestamp = data.get("timestamp")
        importance = data.get("importance")
        return cls(
            id=str(data.get("id") or generate_event_id()),
            timestamp=int(timestamp) if isinstance(timestamp, (int, float)) else 0,
            text=str(data.get("text", "")),
            importance=int(importance) if isinstance(importance, (int, float)) else 3,
            compressed=bool(data.get("compressed", False)),
        )


@dataclass
class CharacterState:
    """Latest known state of a named character."""

    name: str
    state: str
    last_updated: int

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "state": self.state,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, name: str, data: dict) -> CharacterState:
        updated = data.get("lastUpdated")
        return cls(
            name=str(data.get("name") or name),
            state=str(data.get("state", "")),
            last_updated=int(updated) if isinstance(updated, (int, float)) else 0,
        )


@dataclass
class Settings:
    """Per-document settings, persisted alongside the narrative state."""

    token_limit: int = 1000
    auto_update: bool = True
    tracked_keywords: list[str] = field(default_factory=list)
    compression_threshold: float = DEFAULT_COMPRESSION_THRESHOLD

    @property
    def compression_budget(self) -> float:
        """Token count above which the compiled memory gets compressed."""
        return self.token_limit * self.compression_threshold

    def to_dict(self) -> dict:
        return {
            "tokenLimit": self.token_limit,
            "autoUpdate": self.auto_update,
            "trackedKeywords": list(self.tracked_keywords),
            "compressionThreshold": self.compression_threshold,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> Settings:
        # Stored keys are shallow-merged over the defaults. The token limit is
        # clamped to its valid range and the threshold is never read back.
        settings = cls()
        if not isinstance(data, dict):
            return settings
        limit = data.get("tokenLimit")
        if isinstance(limit, (int, float)) and not isinstance(limit, bool):
            settings.token_limit = min(TOKEN_LIMIT_MAX, max(TOKEN_LIMIT_MIN, int(limit)))
        if isinstance(data.get("autoUpdate"), bool):
            settings.auto_update = data["autoUpdate"]
        if isinstance(data.get("trackedKeywords"), list):
            settings.tracked_keywords = [
                str(k) for k in data["trackedKeywords"] if str(k).strip()
            ]
        return settings


@dataclass
class NarrativeState:
    """The persisted aggregate for one narrative document."""

    events: list[Event] = field(default_factory=list)
    characters: dict[str, CharacterState] = field(default_factory=dict)
    current_situation: str = ""
    last_processed_section_id: str | int | None = None
    settings: Settings = field(default_factory=Settings)

    def clear(self) -> None:
        """Drop all derived facts. Settings and the position marker survive."""
        self.events = []
        self.characters = {}
        self.current_situation = ""

    def to_dict(self) -> dict:
        return {
            "events": [e.to_dict() for e in self.events],
            "characters": {
                name: c.to_dict() for name, c in self.characters.items()
            },
            "settings": self.settings.to_dict(),
            "lastProcessedSectionId": self.last_processed_section_id,
            "currentSituation": self.current_situation,
        }

    @classmethod
    def from_dict(cls, data: dict) -> NarrativeState:
        """Build state from a stored blob, defaulting anything missing."""
        events = [
            Event.from_dict(item)
            for item in data.get("events") or []
            if isinstance(item, dict)
        ]

        raw_characters = data.get("characters")
        characters: dict[str, CharacterState] = {}
        if isinstance(raw_characters, dict):
            for name, item in raw_characters.items():
                if isinstance(item, dict):
                    characters[name] = CharacterState.from_dict(name, item)

        marker = data.get("lastProcessedSectionId")
        if not isinstance(marker, (str, int)) or isinstance(marker, bool):
            marker = None

        situation = data.get("currentSituation")
        return cls(
            events=events,
            characters=characters,
            current_situation=situation if isinstance(situation, str) else "",
            last_processed_section_id=marker,
            settings=Settings.from_dict(data.get("settings")),
        )


@dataclass
class ExtractedFacts:
    """Typed output of one fact extraction call."""

    events: list[str] = field(default_factory=list)
    characters: dict[str, str] = field(default_factory=dict)
    situation: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.events or self.characters or self.situation)


@dataclass
class CycleResult:
    """Outcome of a pipeline operation.

    status is one of: 'updated', 'refreshed', 'cleared', 'skipped', 'busy',
    'disabled', 'insufficient', 'failed'.
    """

    status: str
    message: str = ""
    memory: str | None = None
    event_count: int = 0


@dataclass
class MemoryStatus:
    """Read-only summary of the published memory for status displays."""

    token_count: int
    token_limit: int
    event_count: int
    recent_events: list[str] = field(default_factory=list)  # newest first
    settings: Settings = field(default_factory=Settings)

    @property
    def percent_used(self) -> int:
        if self.token_limit <= 0:
            return 100
        return min(100, round(self.token_count / self.token_limit * 100))
