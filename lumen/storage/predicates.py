from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any


@dataclass(frozen=True)
class Contains:
    """Case-insensitive substring match."""

    field: str
    value: str


@dataclass(frozen=True)
class InSet:
    field: str
    values: tuple[Any, ...]


@dataclass(frozen=True)
class And:
    items: tuple["Predicate", ...]


@dataclass(frozen=True)
class Or:
    items: tuple["Predicate", ...]


@dataclass(frozen=True)
class Not:
    item: "Predicate"


Predicate = Union[Equals, Contains, InSet, And, Or, Not]

# An empty disjunction never matches.
NO_MATCH = Or(())


def is_no_match(predicate: Predicate) -> bool:
    return isinstance(predicate, Or) and not predicate.items


def split_field(field: str) -> tuple[str | None, str]:
    """Split ``relation.column`` into its parts; plain columns have no relation."""
    if "." in field:
        relation, column = field.split(".", 1)
        return relation, column
    return None, field
