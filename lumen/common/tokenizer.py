from __future__ import annotations

import logging

import jieba

from .errors import SegmentationError

log = logging.getLogger(__name__)


def segment(text: str) -> list[str]:
    """Split query text into word-like tokens.

    Chinese runs are segmented by jieba's dictionary model, latin runs come out
    as whole words. Whitespace-only pieces are dropped; order and duplicates are
    kept.
    """
    if not text or not text.strip():
        return []
    try:
        pieces = list(jieba.cut(text))
    except Exception as exc:
        raise SegmentationError(f"segmentation failed: {exc}") from exc
    return [p for p in pieces if p.strip()]


def load_user_dict(path: str) -> None:
    try:
        jieba.load_userdict(path)
    except Exception as exc:
        raise SegmentationError(f"cannot load user dictionary {path}: {exc}") from exc
    log.info("user_dict_loaded", extra={"path": path})
