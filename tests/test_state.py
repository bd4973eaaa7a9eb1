"""Tests for loading, saving and configuring narrative state."""

import json

import pytest

from story_memory.models import CharacterState, Event, NarrativeState
from story_memory.state import STORAGE_KEY, load_state, save_state, update_settings


class DictStore:
    def __init__(self, data=None):
        self.data = dict(data or {})

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value


def test_missing_state_gives_defaults():
    state = load_state(DictStore())

    assert state.events == []
    assert state.characters == {}
    assert state.current_situation == ""
    assert state.last_processed_section_id is None
    assert state.settings.token_limit == 1000
    assert state.settings.auto_update is True
    assert state.settings.tracked_keywords == []
    assert state.settings.compression_threshold == 0.8


def test_partial_state_is_defaulted():
    store = DictStore(
        {STORAGE_KEY: json.dumps({"currentSituation": "Dusk", "settings": {"tokenLimit": 1500}})}
    )

    state = load_state(store)

    assert state.current_situation == "Dusk"
    assert state.events == []
    assert state.settings.token_limit == 1500
    assert state.settings.auto_update is True


@pytest.mark.parametrize(
    "stored, expected",
    [(100, 500), (5000, 2000), (1200, 1200), (True, 1000), ("900", 1000)],
)
def test_stored_token_limit_is_clamped(stored, expected):
    store = DictStore({STORAGE_KEY: json.dumps({"settings": {"tokenLimit": stored}})})

    assert load_state(store).settings.token_limit == expected


def test_stored_compression_threshold_is_ignored():
    store = DictStore(
        {STORAGE_KEY: json.dumps({"settings": {"compressionThreshold": 0.3}})}
    )

    settings = load_state(store).settings

    assert settings.compression_threshold == 0.8
    assert settings.compression_budget == 800


def test_malformed_entries_are_skipped():
    store = DictStore(
        {
            STORAGE_KEY: json.dumps(
                {
                    "events": [{"id": "e1", "timestamp": 5, "text": "ok"}, "junk", 3],
                    "characters": {"Mara": {"state": "calm"}, "Bad": "not a dict"},
                    "lastProcessedSectionId": {"weird": True},
                }
            )
        }
    )

    state = load_state(store)

    assert [e.text for e in state.events] == ["ok"]
    assert state.events[0].importance == 3
    assert state.events[0].compressed is False
    assert list(state.characters) == ["Mara"]
    assert state.characters["Mara"].name == "Mara"
    assert state.last_processed_section_id is None


def test_corrupt_blob_gives_defaults(caplog):
    state = load_state(DictStore({STORAGE_KEY: "{not json"}))

    assert state.events == []
    assert "Error loading stored state" in caplog.text


def test_saved_layout_uses_persisted_keys():
    store = DictStore()
    state = NarrativeState(
        events=[Event(id="e1", timestamp=10, text="Mara left", compressed=True)],
        characters={"Mara": CharacterState(name="Mara", state="gone", last_updated=11)},
        current_situation="Empty hall",
        last_processed_section_id=7,
    )

    save_state(store, state)
    data = json.loads(store.data[STORAGE_KEY])

    assert set(data) == {
        "events",
        "characters",
        "settings",
        "lastProcessedSectionId",
        "currentSituation",
    }
    assert data["events"][0] == {
        "id": "e1",
        "timestamp": 10,
        "text": "Mara left",
        "importance": 3,
        "compressed": True,
    }
    assert data["characters"]["Mara"] == {"name": "Mara", "state": "gone", "lastUpdated": 11}
    assert data["settings"]["tokenLimit"] == 1000
    assert load_state(store) == state


def test_update_settings_merges():
    store = DictStore()
    save_state(store, NarrativeState(current_situation="kept"))

    settings = update_settings(store, token_limit=1500, tracked_keywords="Mara, , Harrow Keep ")

    assert settings.token_limit == 1500
    assert settings.tracked_keywords == ["Mara", "Harrow Keep"]
    assert settings.auto_update is True

    state = load_state(store)
    assert state.settings.token_limit == 1500
    assert state.current_situation == "kept"


@pytest.mark.parametrize(
    "changes",
    [
        {"token_limit": 100},
        {"token_limit": 2500},
        {"token_limit": "1000"},
        {"auto_update": "yes"},
        {"compression_threshold": 0.5},
        {"colour": "blue"},
    ],
)
def test_update_settings_rejects_invalid(changes):
    store = DictStore()

    with pytest.raises(ValueError):
        update_settings(store, **changes)

    assert store.get(STORAGE_KEY) is None
