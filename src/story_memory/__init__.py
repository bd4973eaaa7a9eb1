"""Story Memory - Incremental, token-bounded memory for growing narratives."""

from story_memory.models import (
    EngineConfig,
    Event,
    CharacterState,
    Settings,
    NarrativeState,
    ExtractedFacts,
    CycleResult,
    MemoryStatus,
)
from story_memory.pipeline import MemoryPipeline
from story_memory.engine import NarrativeMemoryEngine

__version__ = "0.1.0"

__all__ = [
    "NarrativeMemoryEngine",
    "MemoryPipeline",
    "EngineConfig",
    "Event",
    "CharacterState",
    "Settings",
    "NarrativeState",
    "ExtractedFacts",
    "CycleResult",
    "MemoryStatus",
]
