"""Text-understanding service backends for Story Memory."""

from __future__ import annotations

from typing import Protocol, TypedDict


# Substrings providers use when a request does not fit the token budget
BUDGET_EXCEEDED_MARKERS = (
    "token budget",
    "context_length_exceeded",
    "maximum context length",
)


class Message(TypedDict):
    role: str
    content: str


class TextService(Protocol):
    """Protocol for text-understanding services."""

    async def complete(
        self,
        messages: list[Message],
        *,
        model: str,
        max_output_tokens: int,
        temperature: float,
    ) -> str:
        """Return the text of the first completion choice ('' if none)."""
        ...


class OpenAIService:
    """OpenAI chat-completions backend.

    Works with any OpenAI-compatible endpoint via base_url.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
    ):
        from openai import AsyncOpenAI

        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    async def complete(
        self,
        messages: list[Message],
        *,
        model: str,
        max_output_tokens: int,
        temperature: float,
    ) -> str:
        response = await self.client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_output_tokens,
            temperature=temperature,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


def is_budget_exceeded(exc: BaseException) -> bool:
    """Whether an error signals that the request exceeded the token budget."""
    message = str(exc).lower()
    return any(marker in message for marker in BUDGET_EXCEEDED_MARKERS)
