import math
import random

import pytest

from rag_router.config import ChunkingConfig
from rag_router.ingest.chunker import TextChunker, estimate_tokens, normalize_whitespace
from rag_router.types import ChunkStrategy


def _make_prose(sentence_count: int = 80) -> str:
    return " ".join(
        f"Sentence number {i} describes how the ledger records a transfer."
        for i in range(sentence_count)
    )


_VOCAB = ["ledger", "transfer", "account", "audit", "balance", "invoice", "vendor", "quarter"]


def _random_sentences(rng: random.Random, count: int, long_at: int) -> list[str]:
    sentences = []
    for i in range(count):
        length = 45 if i == long_at else rng.randint(2, 12)
        words = " ".join(rng.choice(_VOCAB) for _ in range(length))
        sentences.append(words.capitalize() + rng.choice(".!?"))
    return sentences


def _strip_seed(previous: str, current: str) -> str:
    words = previous.split(" ")
    seed = " ".join(words[-math.ceil(len(words) * 0.1):])
    assert current.startswith(seed + " ")
    return current[len(seed) + 1:]


def test_fixed_chunks_reconstruct_text_and_match_count() -> None:
    text = "abcdefghij" * 25
    chunks = TextChunker.chunk_fixed(text, 40, 10)

    rebuilt = chunks[0] + "".join(chunk[10:] for chunk in chunks[1:])

    assert rebuilt == text
    assert len(chunks) == math.ceil((len(text) - 10) / (40 - 10))
    assert all(len(chunk) <= 40 for chunk in chunks)


def test_fixed_chunks_keep_raw_whitespace() -> None:
    text = "id,name\n1,  Alice\n2,\tBob\n"
    chunks = TextChunker().chunk(text, max_size=10, overlap=2, strategy=ChunkStrategy.FIXED)

    assert chunks[0] + "".join(chunk[2:] for chunk in chunks[1:]) == text


def test_fixed_chunking_rejects_overlap_not_below_max_size() -> None:
    with pytest.raises(ValueError):
        TextChunker.chunk_fixed("some text", 10, 10)

    with pytest.raises(ValueError):
        ChunkingConfig(max_size=100, overlap=100)


def test_detect_strategy() -> None:
    chunker = TextChunker()

    assert chunker.detect_strategy("a,b\n1,2", "CSV") is ChunkStrategy.FIXED
    assert chunker.detect_strategy(_make_prose(), "text") is ChunkStrategy.SENTENCE
    assert chunker.detect_strategy("Short note. Nothing more.", "text") is ChunkStrategy.SEMANTIC
    assert chunker.detect_strategy("x" * 3000, "text") is ChunkStrategy.SEMANTIC


def test_sentence_chunks_carry_word_overlap() -> None:
    chunker = TextChunker(ChunkingConfig(max_size=200, overlap=20))
    chunks = chunker.chunk(_make_prose(12), max_size=200, strategy=ChunkStrategy.SENTENCE)

    assert len(chunks) >= 2
    for previous, current in zip(chunks, chunks[1:]):
        words = previous.split(" ")
        tail = " ".join(words[-math.ceil(len(words) * 0.1):])
        assert current.startswith(tail)


def test_semantic_chunks_split_on_paragraphs_and_headings() -> None:
    text = "# Title\nIntro line.\n\nSecond paragraph here.\n\nThird one."

    chunks = TextChunker().chunk(text, max_size=30, strategy=ChunkStrategy.SEMANTIC)

    assert chunks == ["# Title\n\nIntro line.", "Second paragraph here.", "Third one."]


def test_blank_text_yields_no_chunks() -> None:
    assert TextChunker().chunk("   \n\t ") == []


def test_text_helpers() -> None:
    assert normalize_whitespace("  a \n\t b  ") == "a b"
    assert estimate_tokens("abcde") == 2


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
@pytest.mark.parametrize("max_size", [60, 150, 400])
def test_sentence_chunks_cover_each_sentence_once_within_bound(seed: int, max_size: int) -> None:
    rng = random.Random(seed)
    sentences = _random_sentences(rng, 30, long_at=rng.randrange(30))
    text = "".join(sentence + rng.choice([" ", "  ", "\n", " \t"]) for sentence in sentences)

    chunks = TextChunker().chunk(text, max_size=max_size, strategy=ChunkStrategy.SENTENCE)

    bodies = [chunks[0]] + [
        _strip_seed(previous, current) for previous, current in zip(chunks, chunks[1:])
    ]
    assert " ".join(bodies) == " ".join(sentences)
    for chunk, body in zip(chunks[:-1], bodies):
        assert len(chunk) <= max_size + 1 or body in sentences


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
@pytest.mark.parametrize("max_size", [80, 250, 600])
def test_semantic_chunks_cover_each_paragraph_once_within_bound(seed: int, max_size: int) -> None:
    rng = random.Random(seed)
    sentences = _random_sentences(rng, 40, long_at=rng.randrange(40))
    paragraphs = []
    while sentences:
        take = rng.randint(1, 4)
        paragraphs.append(" ".join(sentences[:take]))
        sentences = sentences[take:]
    text = "\n\n".join(paragraphs)

    chunks = TextChunker().chunk(text, max_size=max_size, strategy=ChunkStrategy.SEMANTIC)

    assert [part for chunk in chunks for part in chunk.split("\n\n")] == paragraphs
    for chunk in chunks[:-1]:
        assert len(chunk) <= max_size + 2 or chunk in paragraphs


def test_oversized_sentence_is_emitted_whole() -> None:
    long_sentence = "The " + "very " * 40 + "long sentence ends here."
    text = f"Short opener. {long_sentence} Short closer."

    chunks = TextChunker().chunk(text, max_size=50, strategy=ChunkStrategy.SENTENCE)

    assert chunks[0] == "Short opener."
    assert sum(long_sentence in chunk for chunk in chunks) == 1
    assert chunks[-1].endswith("Short closer.")
