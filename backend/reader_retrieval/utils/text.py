"""Text processing helpers."""

from __future__ import annotations

import re

# Query terms are separated by whitespace and Latin/CJK punctuation.
_TERM_SPLIT_RE = re.compile(r"[\s,，.。!！?？;；:：、]+")

_CJK_RANGES = r"\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af\uf900-\ufaff"
_LEXICAL_RE = re.compile(rf"[{_CJK_RANGES}]|[^\W_{_CJK_RANGES}]+")


def split_terms(text: str) -> list[str]:
    """Lower-cased query terms split on whitespace and punctuation."""
    return [term for term in _TERM_SPLIT_RE.split(text.lower()) if term]


def lexical_tokens(text: str) -> list[str]:
    """Word tokens for lexical ranking; CJK ideographs become one token each."""
    return _LEXICAL_RE.findall(text.lower())


__all__ = ["split_terms", "lexical_tokens"]
