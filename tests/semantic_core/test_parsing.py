"""Unit tests for the JSON response parser chain."""

import pytest

from src.semantic_core.exceptions import ResponseParseError
from src.semantic_core.parsing import (
    parse_braced_json,
    parse_fenced_json,
    parse_first,
    parse_json,
)


@pytest.mark.unit
class TestParsers:
    """Each parser handles one response shape."""

    def test_parse_json_plain(self) -> None:
        assert parse_json('{"root": "Health"}') == {"root": "Health"}

    def test_parse_json_rejects_prose(self) -> None:
        with pytest.raises(ValueError):
            parse_json('Here you go: {"root": "Health"}')

    def test_parse_fenced_json(self) -> None:
        text = 'Sure!\n```json\n[{"startTime": 0}]\n```\nDone.'
        assert parse_fenced_json(text) == [{"startTime": 0}]

    def test_parse_fenced_json_without_language(self) -> None:
        assert parse_fenced_json('```\n{"a": 1}\n```') == {"a": 1}

    def test_parse_fenced_json_requires_fence(self) -> None:
        with pytest.raises(ValueError, match="no code fence"):
            parse_fenced_json('{"a": 1}')

    def test_parse_braced_json_object(self) -> None:
        text = 'The taxonomy is {"root": "Tech", "branch": "Web"} as requested.'
        assert parse_braced_json(text) == {"root": "Tech", "branch": "Web"}

    def test_parse_braced_json_prefers_outer_array(self) -> None:
        text = 'Segments: [{"startTime": 0}, {"startTime": 10}] end'
        assert parse_braced_json(text) == [{"startTime": 0}, {"startTime": 10}]

    def test_parse_braced_json_without_braces(self) -> None:
        with pytest.raises(ValueError, match="no braces"):
            parse_braced_json("nothing here")


@pytest.mark.unit
class TestParseFirst:
    """The chain returns the first success."""

    def test_plain_json_wins(self) -> None:
        assert parse_first('{"a": 1}') == {"a": 1}

    def test_falls_back_to_fence(self) -> None:
        assert parse_first('```json\n{"a": 1}\n```') == {"a": 1}

    def test_falls_back_to_braces(self) -> None:
        assert parse_first('prefix {"a": 1} suffix') == {"a": 1}

    def test_all_parsers_fail(self) -> None:
        with pytest.raises(ResponseParseError) as exc_info:
            parse_first("no json at all")

        assert len(exc_info.value.details["errors"]) == 3
        assert exc_info.value.details["preview"] == "no json at all"

    def test_custom_parser_order(self) -> None:
        with pytest.raises(ResponseParseError):
            parse_first('```json\n{"a": 1}\n```', parsers=[parse_json])
