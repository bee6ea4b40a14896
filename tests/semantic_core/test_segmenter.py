"""Unit tests for transcript segmentation."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.semantic_core.config import SemanticCoreConfig
from src.semantic_core.exceptions import CallExhausted, SegmentationFailed
from src.semantic_core.schemas import CallResult, CallTrace, ResponseKind
from src.semantic_core.segmenter import TranscriptSegmenter


def json_result(payload: object) -> CallResult:
    return CallResult(payload=payload, trace=CallTrace(response_kind=ResponseKind.JSON))


@pytest.mark.unit
class TestTranscriptSegmenter:
    """Test suite for TranscriptSegmenter class."""

    @pytest.fixture
    def config(self) -> SemanticCoreConfig:
        return SemanticCoreConfig(llm_api_keys=["k"], segment_prompt_chars=50)

    @pytest.fixture
    def caller(self) -> MagicMock:
        caller = MagicMock()
        caller.call = AsyncMock()
        return caller

    @pytest.mark.asyncio
    async def test_segment_returns_sorted_segments(
        self, config: SemanticCoreConfig, caller: MagicMock
    ) -> None:
        """Test camelCase answers are validated and ordered by start time."""
        caller.call.return_value = json_result(
            [
                {
                    "startTime": 60,
                    "endTime": 120,
                    "summary": "Second",
                    "keyTakeaway": "B",
                    "content": "...",
                    "tags": ["b"],
                },
                {"startTime": 0, "endTime": 60, "summary": "First", "keyTakeaway": "A"},
            ]
        )
        segmenter = TranscriptSegmenter(config, caller)

        segments = await segmenter.segment("[00:00] hello", 120)

        assert [s.summary for s in segments] == ["First", "Second"]
        assert segments[0].start_time == 0
        assert segments[0].key_takeaway == "A"
        assert segments[0].tags == []
        assert segments[1].tags == ["b"]
        caller.call.assert_awaited_once()
        assert caller.call.call_args.args[1] == ResponseKind.JSON

    @pytest.mark.asyncio
    async def test_segments_wrapped_in_object(
        self, config: SemanticCoreConfig, caller: MagicMock
    ) -> None:
        """Test JSON-mode answers of the form {"segments": [...]} are unwrapped."""
        caller.call.return_value = json_result(
            {"segments": [{"startTime": 0, "endTime": 30, "summary": "Only"}]}
        )
        segmenter = TranscriptSegmenter(config, caller)

        segments = await segmenter.segment("text", 30)

        assert len(segments) == 1
        assert segments[0].summary == "Only"

    @pytest.mark.asyncio
    async def test_empty_answer_gives_no_segments(
        self, config: SemanticCoreConfig, caller: MagicMock
    ) -> None:
        caller.call.return_value = json_result([])
        segmenter = TranscriptSegmenter(config, caller)

        assert await segmenter.segment("text", 10) == []

    @pytest.mark.asyncio
    async def test_invalid_ranges_are_dropped(
        self, config: SemanticCoreConfig, caller: MagicMock
    ) -> None:
        """Test segments whose end is not after their start are discarded."""
        caller.call.return_value = json_result(
            [
                {"startTime": 50, "endTime": 50, "summary": "Empty"},
                {"startTime": 90, "endTime": 10, "summary": "Backwards"},
                {"startTime": 0, "endTime": 40, "summary": "Kept"},
            ]
        )
        segmenter = TranscriptSegmenter(config, caller)

        segments = await segmenter.segment("text", 100)

        assert [s.summary for s in segments] == ["Kept"]

    @pytest.mark.asyncio
    async def test_unexpected_shape_fails(
        self, config: SemanticCoreConfig, caller: MagicMock
    ) -> None:
        """Test a payload that is not a segment list raises SegmentationFailed."""
        caller.call.return_value = json_result({"root": "Health"})
        segmenter = TranscriptSegmenter(config, caller)

        with pytest.raises(SegmentationFailed):
            await segmenter.segment("text", 10)

    @pytest.mark.asyncio
    async def test_exhausted_call_fails(
        self, config: SemanticCoreConfig, caller: MagicMock
    ) -> None:
        """Test caller exhaustion surfaces as SegmentationFailed."""
        trace = CallTrace(response_kind=ResponseKind.JSON)
        caller.call.side_effect = CallExhausted("all failed", trace=trace)
        segmenter = TranscriptSegmenter(config, caller)

        with pytest.raises(SegmentationFailed) as exc_info:
            await segmenter.segment("text", 10)

        assert isinstance(exc_info.value.__cause__, CallExhausted)

    def test_prompt_truncates_transcript(self, config: SemanticCoreConfig, caller: MagicMock) -> None:
        """Test the transcript is cut to the configured prompt budget."""
        segmenter = TranscriptSegmenter(config, caller)

        prompt = segmenter.build_prompt("x" * 80 + "TAIL", 61.6)

        assert "x" * 50 in prompt
        assert "TAIL" not in prompt
        assert "(Video length: 62s)" in prompt

    def test_prompt_requests_segments_object(
        self, config: SemanticCoreConfig, caller: MagicMock
    ) -> None:
        """Test the prompt asks for an object so JSON mode endpoints can comply."""
        segmenter = TranscriptSegmenter(config, caller)

        prompt = segmenter.build_prompt("text", 10)

        assert '"segments": [' in prompt
        assert "{{" not in prompt

    @pytest.mark.asyncio
    async def test_clock_string_bounds_are_accepted(
        self, config: SemanticCoreConfig, caller: MagicMock
    ) -> None:
        """Test "MM:SS" and "[HH:MM:SS]" bounds are converted to seconds."""
        caller.call.return_value = json_result(
            {
                "segments": [
                    {"startTime": "01:05", "endTime": "[00:02:00]", "summary": "Clock"},
                    {"startTime": "0", "endTime": 65, "summary": "Numeric"},
                ]
            }
        )
        segmenter = TranscriptSegmenter(config, caller)

        segments = await segmenter.segment("text", 120)

        assert [(s.start_time, s.end_time) for s in segments] == [(0.0, 65.0), (65.0, 120.0)]

    @pytest.mark.asyncio
    async def test_unparseable_bounds_fail(
        self, config: SemanticCoreConfig, caller: MagicMock
    ) -> None:
        caller.call.return_value = json_result(
            [{"startTime": "about a minute", "endTime": 90, "summary": "Vague"}]
        )
        segmenter = TranscriptSegmenter(config, caller)

        with pytest.raises(SegmentationFailed):
            await segmenter.segment("text", 90)
