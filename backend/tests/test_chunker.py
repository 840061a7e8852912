"""Tests for chunker."""

import pytest

from reader_retrieval.ingest.chunker import chunk_text, split_blocks


def test_split_blocks_keeps_code_and_headings_apart() -> None:
    text = "# Heading\nIntro line\n\n```python\nx = 1\n\ny = 2\n```\n\n---\n![img](a.png)\nTail"
    assert split_blocks(text) == [
        "# Heading",
        "Intro line",
        "```python\nx = 1\n\ny = 2\n```",
        "---",
        "![img](a.png)",
        "Tail",
    ]


def test_short_text_is_one_chunk(sample_text: str) -> None:
    assert chunk_text(sample_text) == ["Title\n\nParagraph one.\n\nParagraph two is here."]


def test_chunks_respect_size_with_overlap() -> None:
    paragraphs = [f"Paragraph {index} " + "word " * 40 for index in range(10)]
    chunks = chunk_text("\n\n".join(paragraphs), chunk_size=600, overlap=100)
    assert len(chunks) > 1
    assert all(len(chunk) <= 600 * 1.5 for chunk in chunks)
    assert "Paragraph 0" in chunks[0]
    assert "Paragraph 9" in chunks[-1]


def test_oversized_block_is_force_split() -> None:
    text = " ".join(f"token{index}" for index in range(400))
    chunks = chunk_text(text, chunk_size=200, overlap=20)
    assert len(chunks) > 5
    assert all(len(chunk) <= 300 for chunk in chunks)
    assert chunks[0].startswith("token0 ")
    assert "token399" in chunks[-1]


def test_empty_text() -> None:
    assert chunk_text("") == []
    assert chunk_text("\n\n   \n") == []


def test_invalid_sizes() -> None:
    with pytest.raises(ValueError):
        chunk_text("text", chunk_size=100, overlap=100)
