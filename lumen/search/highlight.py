from __future__ import annotations

import html
from typing import Iterable, Sequence

from lumen.common.tokenizer import segment

from .models import HighlightRange


def find_ranges(text: str, query: str, tokens: Sequence[str] | None = None) -> list[HighlightRange]:
    """Locate every occurrence of the query's tokens in ``text``.

    Matching is case-insensitive. The result is the minimal cover of all
    matches: sorted by start, with overlapping or touching spans merged.
    ``tokens`` stands in for ``segment(query)`` when the caller already has them.
    """
    if not text or not query:
        return []

    lower_text = text.lower()
    # lower() can change length for a few code points; offsets must stay in text
    limit = min(len(text), len(lower_text))
    spans: list[tuple[int, int]] = []

    for token in segment(query) if tokens is None else tokens:
        needle = token.lower()
        if not needle:
            continue
        idx = lower_text.find(needle)
        while idx != -1:
            end = min(idx + len(needle), limit)
            if idx < end:
                spans.append((idx, end))
            idx = lower_text.find(needle, idx + len(needle))

    return merge_ranges(spans)


def merge_ranges(spans: Iterable[tuple[int, int]]) -> list[HighlightRange]:
    ordered = sorted(spans)
    if not ordered:
        return []

    merged: list[list[int]] = [list(ordered[0])]
    for start, end in ordered[1:]:
        last = merged[-1]
        if start <= last[1]:
            last[1] = max(last[1], end)
        else:
            merged.append([start, end])
    return [HighlightRange(start=s, end=e) for s, e in merged]


def mark_ranges(text: str, ranges: Iterable[HighlightRange], tag: str = "mark") -> str:
    """Render ``text`` as escaped HTML with each range wrapped in ``tag``."""
    out: list[str] = []
    cursor = 0
    for r in ranges:
        out.append(html.escape(text[cursor : r.start]))
        out.append(f"<{tag}>{html.escape(text[r.start : r.end])}</{tag}>")
        cursor = r.end
    out.append(html.escape(text[cursor:]))
    return "".join(out)
