"""Three-level taxonomy classification of a video."""

from pydantic import ValidationError

from src.utils.logging import get_logger

from .config import SemanticCoreConfig
from .exceptions import CallExhausted, ClassificationFailed
from .model_caller import ResilientModelCaller
from .schemas import ResponseKind, Taxonomy

logger = get_logger(__name__)

TAXONOMY_PROMPT = """
You are the chief architect of a knowledge library. File this video into a
hierarchical taxonomy. Ignore the timeline, focus on the MAIN TOPIC and
CONTEXT.

VIDEO: "{title}"
TEXT: "{transcript}"

INSTRUCTIONS:
Build a three-level taxonomy path (root -> branch -> leaf).
1. ROOT (field): a very general category (e.g. "Health", "Technology",
   "Business", "Science", "Art").
2. BRANCH (discipline): a more specific discipline within the field
   (e.g. "Nutrition", "Web Design", "Marketing", "Physics").
3. LEAF (topic): the specific focus of the video (e.g. "Vitamins",
   "CSS Tricks", "SEO Strategy").

OUTPUT FORMAT (JSON):
{{
  "root": "Root category name",
  "branch": "Subcategory name",
  "leaf": "Topic name"
}}
""".strip()


class TaxonomyClassifier:
    """Asks the generation model where a video belongs in the topic tree."""

    def __init__(self, config: SemanticCoreConfig, caller: ResilientModelCaller):
        self.config = config
        self.caller = caller

    async def classify(self, transcript_text: str, title: str) -> Taxonomy:
        """Classify a video.

        Args:
            transcript_text: Full transcript (truncated for the prompt).
            title: Video title.

        Returns:
            Root, branch and leaf labels.

        Raises:
            ClassificationFailed: If the call is exhausted or the answer lacks
                a root or branch label.
        """
        prompt = TAXONOMY_PROMPT.format(
            title=title,
            transcript=transcript_text[: self.config.taxonomy_prompt_chars],
        )

        try:
            result = await self.caller.call(prompt, ResponseKind.JSON)
        except CallExhausted as e:
            raise ClassificationFailed(
                "Taxonomy call exhausted", details={"attempts": len(e.trace.attempts)}
            ) from e

        try:
            taxonomy = Taxonomy.model_validate(result.payload)
        except ValidationError as e:
            raise ClassificationFailed(
                "Taxonomy response has an unexpected shape",
                details={"errors": e.error_count()},
            ) from e

        logger.info(
            "video_classified",
            root=taxonomy.root,
            branch=taxonomy.branch,
            leaf=taxonomy.leaf,
        )
        return taxonomy
