from __future__ import annotations

from typing import Sequence

from lumen.common.text import strip_markup
from lumen.common.tokenizer import segment

ELLIPSIS = "..."


def build_excerpt(
    text: str, query: str, max_length: int = 150, tokens: Sequence[str] | None = None
) -> str:
    """Return a plain-text excerpt of at most ``max_length`` characters (plus ellipses).

    The window is centred on the earliest occurrence of any query token; when
    nothing matches the head of the text is used.
    """
    plain = strip_markup(text)
    if len(plain) <= max_length:
        return plain

    lower = plain.lower()
    first = -1
    if tokens is None:
        tokens = segment(query)
    for token in tokens:
        idx = lower.find(token.lower())
        if idx != -1 and (first == -1 or idx < first):
            first = idx

    if first == -1:
        return plain[:max_length] + ELLIPSIS

    start = max(0, first - max_length // 2)
    end = min(len(plain), start + max_length)
    excerpt = plain[start:end]
    if start > 0:
        excerpt = ELLIPSIS + excerpt
    if end < len(plain):
        excerpt = excerpt + ELLIPSIS
    return excerpt
