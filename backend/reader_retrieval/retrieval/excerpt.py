"""Query-focused excerpts and term highlighting."""

from __future__ import annotations

import re

from reader_retrieval.utils.text import split_terms

# Scan window used to locate the densest cluster of query terms; independent
# of the requested excerpt length.
WINDOW_SIZE = 200

BOUNDARY_CHARS = frozenset(" \t\r\n.,!?;:。，！？；：、")

# How far an excerpt edge may move outward looking for a boundary.
MAX_SNAP_DISTANCE = 40

ELLIPSIS = "..."
HIGHLIGHT_MARKER = "**"


class ExcerptExtractor:
    """Cuts a bounded, boundary-aligned window of ``text`` around query terms."""

    def __init__(
        self,
        window_size: int = WINDOW_SIZE,
        max_snap_distance: int = MAX_SNAP_DISTANCE,
    ) -> None:
        if window_size < 2:
            raise ValueError("window_size must be at least 2")
        self.window_size = window_size
        self.stride = window_size // 2
        self.max_snap_distance = max_snap_distance

    def extract(self, text: str, query: str, max_length: int = 300) -> str:
        if len(text) <= max_length:
            return text
        terms = list(dict.fromkeys(split_terms(query)))
        anchor = self._best_anchor(_fold(text), terms) if terms else None
        if anchor is None:
            return self._prefix(text, max_length)
        return self._around(text, anchor, max_length)

    def highlight(self, excerpt: str, query: str) -> str:
        terms = sorted(set(split_terms(query)), key=len, reverse=True)
        if not terms:
            return excerpt
        pattern = re.compile("|".join(re.escape(term) for term in terms), re.IGNORECASE)
        return pattern.sub(lambda match: f"{HIGHLIGHT_MARKER}{match.group(0)}{HIGHLIGHT_MARKER}", excerpt)

    # ------------------------------------------------------------------

    def _best_anchor(self, folded: str, terms: list[str]) -> tuple[int, int] | None:
        """Span of matched terms inside the window holding the most distinct terms."""
        best_score = 0
        best_position: int | None = None
        position = 0
        while True:
            window = folded[position : position + self.window_size]
            score = sum(1 for term in terms if term in window)
            if score > best_score:
                best_score = score
                best_position = position
            if position + self.window_size >= len(folded):
                break
            position += self.stride
        if best_position is None:
            return None
        window = folded[best_position : best_position + self.window_size]
        spans: list[tuple[int, int]] = []
        for term in terms:
            index = window.find(term)
            if index >= 0:
                spans.append((best_position + index, best_position + index + len(term)))
        return min(start for start, _ in spans), max(end for _, end in spans)

    def _around(self, text: str, anchor: tuple[int, int], max_length: int) -> str:
        if anchor[1] - anchor[0] > max_length:
            # Span wider than the excerpt: keep its earliest match in view.
            anchor = (anchor[0], anchor[0] + max_length)
        center = (anchor[0] + anchor[1]) // 2
        start = max(0, center - max_length // 2)
        end = min(len(text), start + max_length)
        start = max(0, end - max_length)
        start = self._snap_start(text, start)
        end = self._snap_end(text, end)
        excerpt = text[start:end].strip()
        if start > 0:
            excerpt = ELLIPSIS + excerpt
        if end < len(text):
            excerpt = excerpt + ELLIPSIS
        return excerpt

    def _prefix(self, text: str, max_length: int) -> str:
        end = max_length
        floor = max(1, max_length - self.max_snap_distance)
        for position in range(max_length - 1, floor - 1, -1):
            if text[position] in BOUNDARY_CHARS:
                end = position
                break
        return text[:end].rstrip() + ELLIPSIS

    def _snap_start(self, text: str, start: int) -> int:
        if start <= 0:
            return 0
        floor = max(0, start - self.max_snap_distance)
        for position in range(start - 1, floor - 1, -1):
            if text[position] in BOUNDARY_CHARS:
                return position + 1
        return 0 if floor == 0 else start

    def _snap_end(self, text: str, end: int) -> int:
        if end >= len(text):
            return len(text)
        ceiling = min(len(text), end + self.max_snap_distance)
        for position in range(end, ceiling):
            if text[position] in BOUNDARY_CHARS:
                return position
        return len(text) if ceiling == len(text) else end


def _fold(text: str) -> str:
    """Lower-case ``text`` without changing its length so offsets stay valid."""
    folded = []
    for char in text:
        lowered = char.lower()
        folded.append(lowered if len(lowered) == 1 else char)
    return "".join(folded)


_DEFAULT = ExcerptExtractor()


def extract_excerpt(text: str, query: str, max_length: int = 300) -> str:
    return _DEFAULT.extract(text, query, max_length)


def highlight(excerpt: str, query: str) -> str:
    return _DEFAULT.highlight(excerpt, query)


__all__ = ["ExcerptExtractor", "extract_excerpt", "highlight", "WINDOW_SIZE", "BOUNDARY_CHARS"]
