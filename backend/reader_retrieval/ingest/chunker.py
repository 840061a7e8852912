"""Chunking utilities."""

from __future__ import annotations

import re
from typing import Iterator

_FENCE = "```"
_RULE_RE = re.compile(r"^[-*_]{3,}$")
_IMAGE_RE = re.compile(r"^!\[.*\]\(.*\)$")
_LINE_RE = re.compile(r"\r?\n")

BLOCK_JOINER = "\n\n"


def split_blocks(text: str) -> list[str]:
    """Split markdown-ish text into paragraph blocks.

    Fenced code stays in one block; headings, horizontal rules and standalone
    images are blocks of their own.
    """
    if not text:
        return []
    blocks: list[str] = []
    current: list[str] = []
    in_code = False

    def flush() -> None:
        if current:
            blocks.append("\n".join(current))
            current.clear()

    for line in _LINE_RE.split(text):
        stripped = line.strip()
        if stripped.startswith(_FENCE):
            if in_code:
                current.append(line)
                flush()
                in_code = False
            else:
                flush()
                in_code = True
                current.append(line)
            continue
        if in_code:
            current.append(line)
            continue
        if stripped.startswith("#") or _RULE_RE.match(stripped) or _IMAGE_RE.match(stripped):
            flush()
            blocks.append(line)
            continue
        if not stripped:
            flush()
        else:
            current.append(line)
    flush()
    return [block for block in blocks if block.strip()]


def chunk_text(text: str, chunk_size: int = 600, overlap: int = 100) -> list[str]:
    """Pack paragraph blocks into chunks of about ``chunk_size`` characters.

    Consecutive chunks share ``overlap`` trailing characters. A single block
    longer than one and a half chunks is force-split at a newline or space
    near ``chunk_size``.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    if not 0 <= overlap < chunk_size:
        raise ValueError("overlap must be smaller than chunk_size")
    chunks: list[str] = []
    current = ""
    for block in split_blocks(text):
        if current and len(current) + len(block) > chunk_size:
            chunks.append(current.strip())
            tail = current[-overlap:] if overlap else ""
            current = tail + BLOCK_JOINER + block
        else:
            current = current + BLOCK_JOINER + block if current else block
        for piece, rest in _force_split(current, chunk_size, overlap):
            chunks.append(piece)
            current = rest
    if current.strip():
        chunks.append(current.strip())
    return [chunk for chunk in chunks if chunk]


def _force_split(current: str, chunk_size: int, overlap: int) -> Iterator[tuple[str, str]]:
    limit = chunk_size * 1.5
    while len(current) > limit:
        split_at = current.rfind("\n", 0, chunk_size + 1)
        if split_at == -1 or split_at < chunk_size * 0.5:
            split_at = current.rfind(" ", 0, chunk_size + 1)
        if split_at <= overlap:
            split_at = chunk_size
        piece = current[:split_at].strip()
        current = current[max(0, split_at - overlap) :]
        yield piece, current


__all__ = ["chunk_text", "split_blocks"]
