"""AI-driven transcript segmentation."""

from typing import Any

from pydantic import TypeAdapter, ValidationError

from src.utils.logging import get_logger

from .config import SemanticCoreConfig
from .exceptions import CallExhausted, SegmentationFailed
from .model_caller import ResilientModelCaller
from .schemas import AISegment, ResponseKind

logger = get_logger(__name__)

_SEGMENTS_ADAPTER = TypeAdapter(list[AISegment])

SEGMENTATION_PROMPT = """
Role: You are an expert video analyst (deep content analyzer).
Analyze the video transcript below, ignore marketing filler and extract the
factual information structure.

INPUT TRANSCRIPT:
"{transcript}"
(Video length: {duration}s)

SEGMENTATION INSTRUCTIONS:
1. Split the text into logical semantic blocks (subtopics). Split on changes
   of thought, not on time.
2. "summary": a factual, descriptive name of the topic.
3. "keyTakeaway": one sentence with the main fact or advice of the segment.
4. "tags": 2-3 keywords for the segment.
5. "startTime" / "endTime": segment bounds in seconds, taken from the
   transcript timestamps.

OUTPUT FORMAT (JSON object with a "segments" array):
{{
  "segments": [
    {{
      "startTime": 0,
      "endTime": 120,
      "summary": "Segment topic",
      "keyTakeaway": "Key idea...",
      "content": "Original segment text...",
      "tags": ["keyword"]
    }}
  ]
}}
""".strip()


class TranscriptSegmenter:
    """Splits a timestamped transcript into coherent, summarized segments."""

    def __init__(self, config: SemanticCoreConfig, caller: ResilientModelCaller):
        self.config = config
        self.caller = caller

    def build_prompt(self, transcript_text: str, estimated_duration_seconds: float) -> str:
        """Render the segmentation prompt.

        Args:
            transcript_text: Raw transcript, truncated to the configured prompt size.
            estimated_duration_seconds: Rough video length, rounded to whole seconds.

        Returns:
            Prompt text asking for a JSON object with a "segments" array.
        """
        return SEGMENTATION_PROMPT.format(
            transcript=transcript_text[: self.config.segment_prompt_chars],
            duration=round(estimated_duration_seconds),
        )

    async def segment(
        self, transcript_text: str, estimated_duration_seconds: float
    ) -> list[AISegment]:
        """Segment a transcript.

        The estimated duration is only context for the model; returned
        ranges are not checked against it.

        Args:
            transcript_text: Raw transcript with inline timestamps.
            estimated_duration_seconds: Rough video length.

        Returns:
            Segments ordered by start time (possibly empty).

        Raises:
            SegmentationFailed: If no response with the expected shape was obtained.
        """
        prompt = self.build_prompt(transcript_text, estimated_duration_seconds)

        try:
            result = await self.caller.call(prompt, ResponseKind.JSON)
        except CallExhausted as e:
            raise SegmentationFailed(
                "Segmentation call exhausted", details={"attempts": len(e.trace.attempts)}
            ) from e

        segments = self._to_segments(result.payload)
        logger.info(
            "transcript_segmented",
            segments=len(segments),
            attempts=len(result.trace.attempts),
        )
        return segments

    def _to_segments(self, payload: Any) -> list[AISegment]:
        if isinstance(payload, dict) and isinstance(payload.get("segments"), list):
            payload = payload["segments"]

        try:
            segments = _SEGMENTS_ADAPTER.validate_python(payload)
        except ValidationError as e:
            raise SegmentationFailed(
                "Segmentation response has an unexpected shape",
                details={"errors": e.error_count()},
            ) from e

        valid = []
        for segment in segments:
            if segment.end_time <= segment.start_time:
                logger.warning(
                    "segment_dropped_invalid_range",
                    start_time=segment.start_time,
                    end_time=segment.end_time,
                )
                continue
            valid.append(segment)

        return sorted(valid, key=lambda s: s.start_time)
