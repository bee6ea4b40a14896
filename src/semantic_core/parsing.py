"""Parser chain for JSON answers from generation models.

Models asked for JSON sometimes wrap it in Markdown fences or surround it
with prose. Each parser here is pure and handles one of those shapes;
``parse_first`` tries them in order and returns the first success.
"""

import json
import re
from collections.abc import Callable, Sequence
from typing import Any

from .exceptions import ResponseParseError

Parser = Callable[[str], Any]

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)


def parse_json(text: str) -> Any:
    """Parse the text as-is."""
    return json.loads(text)


def parse_fenced_json(text: str) -> Any:
    """Parse the body of the first Markdown code fence.

    Raises:
        ValueError: If the text contains no fence.
    """
    match = _FENCE_RE.search(text)
    if match is None:
        raise ValueError("no code fence found")
    return json.loads(match.group(1))


def parse_braced_json(text: str) -> Any:
    """Parse the outermost ``{...}`` or ``[...]`` slice of the text.

    Raises:
        ValueError: If no balanced-looking slice exists.
    """
    candidates = []
    for opener, closer in (("{", "}"), ("[", "]")):
        start = text.find(opener)
        end = text.rfind(closer)
        if start != -1 and end > start:
            candidates.append((start, text[start : end + 1]))

    if not candidates:
        raise ValueError("no braces found")

    # Whichever structure opens first is the outermost one
    for _, candidate in sorted(candidates):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise ValueError("braced slice is not valid JSON")


DEFAULT_PARSERS: tuple[Parser, ...] = (parse_json, parse_fenced_json, parse_braced_json)


def parse_first(text: str, parsers: Sequence[Parser] = DEFAULT_PARSERS) -> Any:
    """Return the result of the first parser that accepts the text.

    Args:
        text: Raw model response.
        parsers: Parsers to try, in order.

    Returns:
        Decoded JSON value.

    Raises:
        ResponseParseError: If every parser fails.
    """
    errors: list[str] = []
    for parser in parsers:
        try:
            return parser(text)
        except ValueError as e:  # json.JSONDecodeError is a ValueError
            errors.append(f"{parser.__name__}: {e}")

    raise ResponseParseError(
        "Response could not be parsed as JSON",
        details={"errors": errors, "preview": text[:200]},
    )
