"""Timestamp helpers shared by transcript providers and segment schemas."""

import re

_TIMESTAMP_RE = re.compile(r"^\[?(\d{1,2}(?::\d{2}){1,2})\]?$")


def format_timestamp(seconds: float) -> str:
    """Format seconds as [MM:SS] or [HH:MM:SS].

    Examples:
        >>> format_timestamp(125)
        "[02:05]"
        >>> format_timestamp(3725)
        "[01:02:05]"
    """
    total_seconds = int(seconds)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    secs = total_seconds % 60

    if hours > 0:
        return f"[{hours:02d}:{minutes:02d}:{secs:02d}]"
    return f"[{minutes:02d}:{secs:02d}]"


def parse_timestamp(value: str) -> int:
    """Convert "MM:SS" or "HH:MM:SS" (brackets optional) to seconds.

    Raises:
        ValueError: If the value is not a timestamp.
    """
    match = _TIMESTAMP_RE.match(value.strip())
    if match is None:
        raise ValueError(f"Not a timestamp: {value!r}")

    seconds = 0
    for part in match.group(1).split(":"):
        seconds = seconds * 60 + int(part)
    return seconds
