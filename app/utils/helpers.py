"""
Common utility functions and helpers.
"""
import html
import re
from typing import Optional

from app.config import settings

# Leading chatter the model adds despite being told not to.
_PREAMBLE_RE = re.compile(
    r"^(here's what|here's the|here is the|here is what|here's|here is|"
    r"i'll|i will|let me|i can|i've|i have)\b",
    re.IGNORECASE,
)
_LABEL_RE = re.compile(
    r"^(here's the content:|here's the response:|generated content:|content:|response:)",
    re.IGNORECASE,
)
_FENCE_OPEN_RE = re.compile(r"^```[a-zA-Z]*\n?", re.MULTILINE)
_FENCE_CLOSE_RE = re.compile(r"\n?```$", re.MULTILINE)
_UNSAFE_FILENAME_RE = re.compile(r"[^\w\- ]+")


def clean_generated_text(text: str) -> str:
    """
    Strip markdown code fences and boilerplate lead-ins from model output.

    Args:
        text: Raw text returned by the model

    Returns:
        Cleaned text
    """
    text = _FENCE_OPEN_RE.sub("", text, count=1)
    text = _FENCE_CLOSE_RE.sub("", text, count=1)
    text = text.strip()
    text = _LABEL_RE.sub("", text)
    text = _PREAMBLE_RE.sub("", text)
    return text.strip()


def ensure_html(text: str) -> str:
    """
    Wrap plain text in paragraph tags; text that already has markup is kept.

    Blank lines separate paragraphs.  Plain text is escaped so the result
    is always a well-formed HTML fragment.
    """
    if not text:
        return ""
    if "<" in text:
        return text
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    return "".join(f"<p>{html.escape(p)}</p>" for p in paragraphs)


def safe_filename(title: str, extension: str = "pdf") -> str:
    """
    Turn a document title into a filesystem-safe export filename.

    Args:
        title: Document title (may be blank)
        extension: File extension without the dot

    Returns:
        e.g. ``"Quarterly Report.pdf"``; ``"document.pdf"`` for a blank title
    """
    stem = _UNSAFE_FILENAME_RE.sub("", title or "").strip()
    stem = re.sub(r"\s+", " ", stem)[:100].strip()
    if not stem or stem == settings.DEFAULT_DOCUMENT_TITLE:
        stem = "document"
    return f"{stem}.{extension}"


def resolve_title(title: Optional[str]) -> str:
    """Blank or missing titles fall back to the default title."""
    title = (title or "").strip()
    return title or settings.DEFAULT_DOCUMENT_TITLE


def truncate_text(text: str, max_length: int = 200, suffix: str = "...") -> str:
    """
    Truncate text to maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
