from __future__ import annotations


class LumenError(Exception):
    """Base class for search engine failures."""


class SegmentationError(LumenError):
    """The word segmenter failed on a piece of text."""


class ContentStoreError(LumenError):
    """A content store query could not be completed."""

    def __init__(self, message: str, collection: str | None = None):
        super().__init__(message)
        self.collection = collection


class InvalidQueryError(LumenError):
    """A request or predicate that cannot be executed as given.

    Short queries are not invalid; they resolve to an empty response.
    """
