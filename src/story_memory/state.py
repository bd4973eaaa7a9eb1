"""Loading, saving and configuring persisted narrative state."""

from __future__ import annotations

import json
import logging

from story_memory.host import KeyValueStore
from story_memory.models import TOKEN_LIMIT_MAX, TOKEN_LIMIT_MIN, NarrativeState, Settings


logger = logging.getLogger(__name__)

STORAGE_KEY = "memoryManagerData"

UPDATABLE_SETTINGS = ("token_limit", "auto_update", "tracked_keywords")


def load_state(store: KeyValueStore) -> NarrativeState:
    """Load state from the store, defaulting anything missing or corrupt."""
    raw = store.get(STORAGE_KEY)
    if not raw:
        return NarrativeState()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.exception("Error loading stored state, starting fresh")
        return NarrativeState()
    if not isinstance(data, dict):
        logger.error("Stored state is not an object, starting fresh")
        return NarrativeState()
    return NarrativeState.from_dict(data)


def save_state(store: KeyValueStore, state: NarrativeState) -> None:
    """Write the full state blob."""
    store.set(STORAGE_KEY, json.dumps(state.to_dict(), ensure_ascii=False))


def parse_keywords(value: str | list[str]) -> list[str]:
    """Normalize keywords given as a list or as comma-separated text."""
    items = value.split(",") if isinstance(value, str) else value
    return [str(k).strip() for k in items if str(k).strip()]


def validate_settings_update(changes: dict) -> dict:
    """Check and normalize a settings update.

    Raises:
        ValueError: on unknown keys or out-of-range values
    """
    normalized = {}
    for key, value in changes.items():
        if key == "compression_threshold":
            raise ValueError("compression_threshold is fixed and cannot be changed")
        if key not in UPDATABLE_SETTINGS:
            raise ValueError(f"Unknown setting: {key}")

        if key == "token_limit":
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"token_limit must be an integer: {value!r}")
            if not TOKEN_LIMIT_MIN <= value <= TOKEN_LIMIT_MAX:
                raise ValueError(
                    f"token_limit must be between {TOKEN_LIMIT_MIN} and {TOKEN_LIMIT_MAX}: {value}"
                )
        elif key == "auto_update":
            if not isinstance(value, bool):
                raise ValueError(f"auto_update must be a boolean: {value!r}")
        elif key == "tracked_keywords":
            value = parse_keywords(value)

        normalized[key] = value
    return normalized


def update_settings(store: KeyValueStore, **changes) -> Settings:
    """Shallow-merge validated changes into the stored settings.

    Returns:
        The updated settings
    """
    normalized = validate_settings_update(changes)
    state = load_state(store)
    for key, value in normalized.items():
        setattr(state.settings, key, value)
    save_state(store, state)
    return state.settings
