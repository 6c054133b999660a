"""Byte-budget text helpers shared by the crawler, analyzer and benchmark."""

from __future__ import annotations


def truncate(text: str, max_bytes: int, suffix: str = "...") -> str:
    """Cut text to at most max_bytes of UTF-8 and append suffix.

    The cut walks back over continuation bytes so a multi-byte code point is
    never split. Text that already ends with suffix and fits the budget in
    front of it is returned unchanged.
    """
    raw = text.encode("utf-8")
    if len(raw) <= max_bytes:
        return text
    if suffix and text.endswith(suffix) and len(raw) - len(suffix.encode("utf-8")) <= max_bytes:
        return text

    cut = max(max_bytes, 0)
    while cut > 0 and raw[cut] & 0xC0 == 0x80:
        cut -= 1
    return raw[:cut].decode("utf-8") + suffix
