"""Tests for excerpt extraction and highlighting."""

from reader_retrieval.retrieval.excerpt import ExcerptExtractor, extract_excerpt, highlight

FILLER = "alpha beta gamma delta " * 30


def test_short_text_returned_verbatim() -> None:
    text = "Short text about machine learning."
    assert extract_excerpt(text, "machine", 300) == text
    assert extract_excerpt(text, "absent", len(text)) == text


def test_single_occurrence_is_included() -> None:
    text = FILLER + "xylophone " + FILLER
    excerpt = extract_excerpt(text, "xylophone", 300)
    assert "xylophone" in excerpt
    assert excerpt.startswith("...")
    assert excerpt.endswith("...")
    assert len(excerpt) <= 300 + 2 * 40 + 6


def test_edges_snap_to_word_boundaries() -> None:
    text = FILLER + "xylophone " + FILLER
    body = extract_excerpt(text, "xylophone", 120).strip(".")
    words = body.split()
    assert all(word in {"alpha", "beta", "gamma", "delta", "xylophone"} for word in words)


def test_match_is_case_insensitive() -> None:
    text = FILLER + "Xylophone " + FILLER
    assert "Xylophone" in extract_excerpt(text, "XYLOPHONE", 200)


def test_no_match_returns_snapped_prefix() -> None:
    excerpt = extract_excerpt(FILLER, "nothing here", 100)
    assert excerpt.endswith("...")
    prefix = excerpt[: -len("...")]
    assert len(prefix) <= 100
    assert FILLER.startswith(prefix)
    assert not prefix.endswith(" ")


def test_window_with_most_distinct_terms_wins() -> None:
    text = FILLER[:60] + "apple " + FILLER + "apple banana " + FILLER
    excerpt = extract_excerpt(text, "apple banana", 100)
    assert "banana" in excerpt


def test_first_window_wins_ties() -> None:
    text = FILLER[:100] + "apple " + FILLER + "banana " + FILLER
    excerpt = extract_excerpt(text, "apple banana", 100)
    assert "apple" in excerpt
    assert "banana" not in excerpt


def test_cjk_query_terms() -> None:
    text = "今天天气很好。" * 50 + "机器学习是人工智能的一个分支。" + "今天天气很好。" * 50
    excerpt = extract_excerpt(text, "机器学习", 60)
    assert "机器学习" in excerpt
    assert excerpt.startswith("...") and excerpt.endswith("...")


def test_custom_window_size() -> None:
    extractor = ExcerptExtractor(window_size=50)
    text = FILLER + "xylophone " + FILLER
    assert "xylophone" in extractor.extract(text, "xylophone", 80)


def test_highlight_wraps_every_occurrence() -> None:
    assert highlight("Neural nets and NEURAL networks", "neural") == "**Neural** nets and **NEURAL** networks"


def test_highlight_prefers_longer_terms() -> None:
    assert highlight("networks net", "net, network") == "**network**s **net**"


def test_highlight_without_terms_is_identity() -> None:
    assert highlight("unchanged", " , ") == "unchanged"


def test_terms_wider_apart_than_max_length_keep_a_match() -> None:
    text = "alpha " + "x" * 180 + " beta " + "filler " * 100
    excerpt = extract_excerpt(text, "alpha beta", 150)
    assert "alpha" in excerpt

    spaced = "lorem " * 40 + "alpha " + "y " * 95 + "beta " + "filler " * 100
    excerpt = extract_excerpt(spaced, "alpha beta", 150)
    assert "alpha" in excerpt or "beta" in excerpt
    assert len(excerpt) <= 150 + 2 * 40 + 6
