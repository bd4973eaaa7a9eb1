"""Token counting backends for Story Memory."""

from __future__ import annotations

import logging
import math
from typing import Protocol, Sequence


logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


class Tokenizer(Protocol):
    """Protocol for tokenizer backends."""

    def encode(self, text: str) -> Sequence[int]:
        """Encode text into a token sequence."""
        ...


class TiktokenTokenizer:
    """Tokenizer backed by tiktoken.

    The encoding is loaded on first use, since loading may download the BPE
    file. A failed load raises from ``encode`` and is retried next call.
    """

    def __init__(self, model: str = "gpt-4o-mini", fallback_encoding: str = "o200k_base"):
        import tiktoken

        self._tiktoken = tiktoken
        self.model = model
        self.fallback_encoding = fallback_encoding
        self._encoding = None

    def _load_encoding(self):
        try:
            return self._tiktoken.encoding_for_model(self.model)
        except KeyError:
            # Model names tiktoken does not know (other providers)
            return self._tiktoken.get_encoding(self.fallback_encoding)

    def encode(self, text: str) -> list[int]:
        """Encode text into token ids."""
        if self._encoding is None:
            self._encoding = self._load_encoding()
        return self._encoding.encode(text)


class HeuristicTokenizer:
    """Deterministic, dependency-free tokenizer.

    Produces one pseudo-token per four characters. Intended for tests and
    offline use where downloading encodings is undesirable.
    """

    def encode(self, text: str) -> list[int]:
        return [0] * estimate_tokens(text)


def estimate_tokens(text: str) -> int:
    """Character-based token estimate (~4 chars per token)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def count_tokens(text: str, tokenizer: Tokenizer | None = None) -> int:
    """Count tokens in text, falling back to the character heuristic.

    Never raises: any tokenizer failure degrades to ``estimate_tokens``.
    """
    if not text:
        return 0
    if tokenizer is None:
        return estimate_tokens(text)
    try:
        return len(tokenizer.encode(text))
    except Exception as e:
        logger.debug("Tokenizer failed (%s), using character estimate", e)
        return estimate_tokens(text)
