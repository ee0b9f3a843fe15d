from __future__ import annotations

from urllib.parse import urlparse

# Preferred cut points when trimming, coarsest first.
_SEPARATORS = ("\n\n", "\n", ". ", " ")
MIN_CHUNK_CHARS = 140


def is_valid_url(url: str | None) -> bool:
    """Basic URL validation."""
    if not url:
        return False
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except ValueError:
        return False


def trim_prompt(text: str, max_chars: int) -> str:
    """Trim text to at most ``max_chars``, cutting at the coarsest natural boundary.

    Paragraph breaks are preferred over line breaks, then sentence ends, then
    spaces. A boundary is only used if it keeps at least half of the budget;
    otherwise the text is hard-sliced.
    """
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    window = text[:max_chars]
    if max_chars < MIN_CHUNK_CHARS:
        return window

    floor = max_chars // 2
    for separator in _SEPARATORS:
        cut = window.rfind(separator)
        if cut >= floor:
            keep = cut + 1 if separator == ". " else cut
            return window[:keep].rstrip()
    return window
