"""Outbound text helpers."""

from __future__ import annotations

from typing import Any

MAX_MESSAGE_LENGTH = 4000


def render(content: Any) -> str:
    """Coerce outbound *content* to text."""
    if content is None:
        return ""
    return content if isinstance(content, str) else str(content)


def split_message(text: str, max_len: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Break *text* into chunks of at most *max_len* characters.

    Prefers a newline, then a space, in the second half of each window;
    falls back to a hard cut.
    """
    if max_len <= 0:
        raise ValueError("max_len must be positive")
    chunks: list[str] = []
    while len(text) > max_len:
        window = text[:max_len]
        cut = window.rfind("\n")
        if cut < max_len // 2:
            cut = window.rfind(" ")
        if cut < max_len // 2:
            cut = max_len
        chunks.append(text[:cut])
        text = text[cut:].lstrip()
    if text or not chunks:
        chunks.append(text)
    return chunks
