from lumen.search.highlight import find_ranges, mark_ranges, merge_ranges
from lumen.search.models import HighlightRange


def _covered(ranges):
    return {i for r in ranges for i in range(r.start, r.end)}


def test_chinese_match_uses_character_offsets():
    assert find_ranges("这是一个设计课程", "设计") == [HighlightRange(4, 6)]


def test_case_insensitive_match():
    assert find_ranges("Design Course", "design") == [HighlightRange(0, 6)]


def test_repeated_occurrences():
    assert find_ranges("设计是设计的核心", "设计") == [HighlightRange(0, 2), HighlightRange(3, 5)]


def test_no_match_and_empty_inputs():
    assert find_ranges("Hello World", "设计") == []
    assert find_ranges("", "design") == []
    assert find_ranges("Design", "") == []


def test_adjacent_tokens_merge():
    # spans that touch end-to-start collapse into one
    ranges = find_ranges("designthinking", "design thinking")
    assert ranges == [HighlightRange(0, 14)]


def test_overlapping_spans_merge():
    assert merge_ranges([(0, 4), (2, 6), (8, 9), (9, 10)]) == [HighlightRange(0, 6), HighlightRange(8, 10)]


def test_ranges_are_sorted_disjoint_and_in_bounds():
    samples = [
        ("Design thinking is design work for designers", "design work"),
        ("aaaaaa", "aa"),
        ("设计思维设计", "设计思维"),
        ("Start of text with important keyword in the middle", "keyword text"),
    ]
    for text, query in samples:
        ranges = find_ranges(text, query)
        for r in ranges:
            assert 0 <= r.start < r.end <= len(text)
        for a, b in zip(ranges, ranges[1:]):
            assert a.end < b.start


def test_token_subset_covers_less():
    text = "Design thinking is design work"
    small = _covered(find_ranges(text, "design"))
    large = _covered(find_ranges(text, "design thinking"))
    assert small
    assert small <= large


def test_mark_ranges_escapes_text():
    text = "<b>Design</b> & more"
    out = mark_ranges(text, find_ranges(text, "design"))
    assert out == "&lt;b&gt;<mark>Design</mark>&lt;/b&gt; &amp; more"
