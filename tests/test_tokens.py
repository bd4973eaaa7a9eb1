"""Tests for token counting."""

from story_memory.tokens import HeuristicTokenizer, count_tokens, estimate_tokens


class BrokenTokenizer:
    def encode(self, text):
        raise RuntimeError("tokenizer unavailable")


def test_empty_text_is_zero_tokens():
    assert count_tokens("") == 0
    assert count_tokens("", BrokenTokenizer()) == 0


def test_estimate_rounds_up():
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_uses_tokenizer_length():
    class WordTokenizer:
        def encode(self, text):
            return text.split()

    assert count_tokens("one two three", WordTokenizer()) == 3


def test_falls_back_when_tokenizer_fails():
    assert count_tokens("x" * 10, BrokenTokenizer()) == 3


def test_heuristic_tokenizer_matches_estimate():
    text = "The lantern flickered."
    assert len(HeuristicTokenizer().encode(text)) == estimate_tokens(text)
    assert count_tokens(text, HeuristicTokenizer()) == estimate_tokens(text)


def test_tiktoken_load_failure_falls_back_to_estimate(monkeypatch):
    import tiktoken

    from story_memory import EngineConfig, NarrativeMemoryEngine

    def offline(*args, **kwargs):
        raise ConnectionError("could not download o200k_base")

    monkeypatch.setattr(tiktoken, "encoding_for_model", offline)
    monkeypatch.setattr(tiktoken, "get_encoding", offline)

    with NarrativeMemoryEngine(EngineConfig(db_path=":memory:")) as engine:
        assert count_tokens("abcdefgh", engine._tokenizer) == 2


def test_tiktoken_encoding_loads_once_available(monkeypatch):
    import tiktoken

    from story_memory.tokens import TiktokenTokenizer

    class CharEncoding:
        def encode(self, text):
            return list(range(len(text)))

    loads = []

    def unknown_model(model):
        raise KeyError(model)

    def get_encoding(name):
        loads.append(name)
        if len(loads) == 1:
            raise ConnectionError("offline")
        return CharEncoding()

    monkeypatch.setattr(tiktoken, "encoding_for_model", unknown_model)
    monkeypatch.setattr(tiktoken, "get_encoding", get_encoding)
    tokenizer = TiktokenTokenizer(model="local-model")

    assert count_tokens("x" * 10, tokenizer) == 3
    assert count_tokens("x" * 10, tokenizer) == 10
    assert count_tokens("abc", tokenizer) == 3
    assert loads == ["o200k_base", "o200k_base"]
