"""Helpers for HH:MM:SS style durations used by the editor."""

from __future__ import annotations


def parse_duration(value: str) -> float:
    """Parse ``HH:MM:SS``, ``MM:SS`` or ``SS`` (fractional seconds allowed) into seconds.

    Raises:
        ValueError: If the string is not a valid non-negative duration
    """
    text = value.strip()
    if not text:
        raise ValueError("Empty duration string")

    parts = text.split(":")
    if len(parts) > 3:
        raise ValueError(f"Invalid duration: {value!r}")

    total = 0.0
    for i, part in enumerate(parts):
        if not part:
            raise ValueError(f"Invalid duration: {value!r}")
        is_last = i == len(parts) - 1
        try:
            number = float(part) if is_last else int(part)
        except ValueError:
            raise ValueError(f"Invalid duration: {value!r}") from None
        if number < 0:
            raise ValueError(f"Negative component in duration: {value!r}")
        if i > 0 and number >= 60:
            raise ValueError(f"Component out of range in duration: {value!r}")
        total = total * 60 + number
    return total


def format_duration(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS`` (fraction dropped), e.g. 5445 -> ``01:30:45``."""
    if seconds < 0:
        raise ValueError("Duration must be non-negative")
    whole = int(seconds)
    hours, rem = divmod(whole, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
