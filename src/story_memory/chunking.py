"""Splitting long text into overlapping fixed-size windows."""

from __future__ import annotations


def window_starts(length: int, window_size: int, overlap: int) -> list[int]:
    """Start offsets of the windows covering [0, length).

    Consecutive windows share `overlap` characters. The walk stops at the
    first window that reaches the end of the text.
    """
    if window_size <= 0:
        raise ValueError(f"window_size must be positive: {window_size}")
    if not 0 <= overlap < window_size:
        raise ValueError(
            f"overlap must be in [0, window_size): {overlap} (window_size={window_size})"
        )
    if length <= window_size:
        return [0]

    stride = window_size - overlap
    starts = []
    start = 0
    while True:
        starts.append(start)
        if start + window_size >= length:
            break
        start += stride
    return starts


def split_into_windows(
    text: str,
    window_size: int = 6000,
    overlap: int = 1000,
) -> list[str]:
    """Split text into overlapping windows.

    Args:
        text: Full text to split
        window_size: Maximum characters per window
        overlap: Characters shared by consecutive windows

    Returns:
        List of windows in document order (a single window for short text)
    """
    return [
        text[start : start + window_size]
        for start in window_starts(len(text), window_size, overlap)
    ]
