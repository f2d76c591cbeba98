from __future__ import annotations

from typing import Iterable, Sequence

from lumen.common.tokenizer import segment
from lumen.storage.predicates import NO_MATCH, Contains, Or, Predicate, is_no_match


def build_filter(query: str, field: str, tokens: Sequence[str] | None = None) -> Predicate:
    """Match ``field`` against any token of ``query``.

    Zero tokens give the empty disjunction, so the field contributes nothing.
    Pass ``tokens`` when the query has already been segmented.
    """
    if tokens is None:
        tokens = segment(query)
    if not tokens:
        return NO_MATCH
    if len(tokens) == 1:
        return Contains(field, tokens[0])
    return Or(tuple(Contains(field, t) for t in tokens))


def any_field_matches(query: str, fields: Iterable[str], tokens: Sequence[str] | None = None) -> Predicate:
    if tokens is None:
        tokens = segment(query)
    parts = [p for p in (build_filter(query, f, tokens) for f in fields) if not is_no_match(p)]
    return Or(tuple(parts))
