"""
Text utilities for reel descriptions.
Handles markup stripping, quote cleanup and hard-cap truncation.
"""
import html
import re
from typing import Optional

ELLIPSIS = "..."

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")
_QUOTES = "\"'"


def strip_html(text: Optional[str]) -> str:
    """Remove markup tags and collapse whitespace."""
    if not text:
        return ""
    plain = _TAG_RE.sub(" ", text)
    plain = html.unescape(plain)
    return _WS_RE.sub(" ", plain).strip()


def truncate_with_ellipsis(text: str, max_chars: int) -> str:
    """
    Cap text at max_chars.

    Text over the cap keeps its first ``max_chars - 3`` characters followed
    by "...", so the result is exactly max_chars long.
    """
    if len(text) <= max_chars:
        return text
    return text[:max(0, max_chars - len(ELLIPSIS))] + ELLIPSIS


def strip_wrapping_quotes(text: str) -> str:
    """Drop one leading and one trailing quote character, if present."""
    if text and text[0] in _QUOTES:
        text = text[1:]
    if text and text[-1] in _QUOTES:
        text = text[:-1]
    return text


def format_weight(weight) -> Optional[str]:
    """Render a listing weight as "<value> oz"; falsy weights yield None."""
    if weight is None or weight == "" or weight == 0:
        return None
    if isinstance(weight, float) and weight.is_integer():
        weight = int(weight)
    value = str(weight).strip()
    if not value:
        return None
    if value.lower().endswith("oz"):
        return value
    return f"{value} oz"
