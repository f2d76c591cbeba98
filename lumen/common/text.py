from __future__ import annotations

import html
import re

from bs4 import BeautifulSoup

_WHITESPACE_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"<[^>]*>")
_SCRIPT_STYLE = {"script", "style", "noscript"}


def strip_markup(text: str) -> str:
    """Return the plain text of a rich-text field on a single line.

    Every tag boundary becomes one space, runs of whitespace collapse to one
    space and the result is trimmed. HTML entities are always decoded.
    """
    if not text:
        return ""
    if _TAG_RE.search(text):
        soup = BeautifulSoup(text, "lxml")
        for tag in soup.find_all(list(_SCRIPT_STYLE)):
            tag.decompose()
        text = soup.get_text(separator=" ")
    else:
        text = html.unescape(text)
    return _WHITESPACE_RE.sub(" ", text).strip()
