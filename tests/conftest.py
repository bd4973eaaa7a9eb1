"""Pytest fixtures for Story Memory tests."""

import json

import pytest
from story_memory import NarrativeMemoryEngine, EngineConfig


class FakeTextService:
    """Scripted text service: returns queued responses in order.

    A queued exception is raised instead of returned. An empty queue yields
    an empty completion.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    async def complete(self, messages, *, model, max_output_tokens, temperature):
        self.calls.append(
            {
                "messages": messages,
                "model": model,
                "max_output_tokens": max_output_tokens,
                "temperature": temperature,
            }
        )
        if not self.responses:
            return ""
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    def prompt(self, index=-1):
        """User prompt of a recorded call."""
        return self.calls[index]["messages"][-1]["content"]


class FixedTokenizer:
    """Tokenizer reporting a fixed token count for any non-empty text."""

    def __init__(self, count):
        self.count = count

    def encode(self, text):
        return [0] * self.count


class RecordingNotifier:
    def __init__(self):
        self.notices = []

    def notify(self, message, level="info"):
        self.notices.append((message, level))

    @property
    def messages(self):
        return [m for m, _ in self.notices]


def extraction_response(events=(), characters=None, situation=""):
    """JSON body of a well-formed extraction response."""
    return json.dumps(
        {
            "events": list(events),
            "characters": characters or {},
            "situation": situation,
        }
    )


STORY_OPENING = (
    "The storm broke over Harrow Keep as Mara climbed the tower stairs, "
    "her lantern held high against the dark."
)


@pytest.fixture
def service():
    return FakeTextService()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def config():
    return EngineConfig(
        db_path=":memory:",
        tokenizer_backend="heuristic",
        window_delay=0,
    )


@pytest.fixture
def engine(config, service, notifier):
    """Create an in-memory engine with a scripted service."""
    engine = NarrativeMemoryEngine(config, service=service, notifier=notifier)
    yield engine
    engine.close()


@pytest.fixture
def pipeline(engine):
    return engine.pipeline("story")


class RecordingSink:
    """Memory sink that records every publish before forwarding it."""

    def __init__(self, inner):
        self.inner = inner
        self.published = []

    def set_memory(self, text):
        self.published.append(text)
        self.inner.set_memory(text)

    def get_memory(self):
        return self.inner.get_memory()
