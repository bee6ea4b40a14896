"""Unit tests for taxonomy classification."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.semantic_core.classifier import TaxonomyClassifier
from src.semantic_core.config import SemanticCoreConfig
from src.semantic_core.exceptions import CallExhausted, ClassificationFailed
from src.semantic_core.schemas import CallResult, CallTrace, ResponseKind


def json_result(payload: object) -> CallResult:
    return CallResult(payload=payload, trace=CallTrace(response_kind=ResponseKind.JSON))


@pytest.mark.unit
class TestTaxonomyClassifier:
    """Test suite for TaxonomyClassifier class."""

    @pytest.fixture
    def config(self) -> SemanticCoreConfig:
        return SemanticCoreConfig(llm_api_keys=["k"], taxonomy_prompt_chars=20)

    @pytest.fixture
    def caller(self) -> MagicMock:
        caller = MagicMock()
        caller.call = AsyncMock()
        return caller

    @pytest.mark.asyncio
    async def test_classify_success(self, config: SemanticCoreConfig, caller: MagicMock) -> None:
        """Test labels are returned with surrounding whitespace removed."""
        caller.call.return_value = json_result(
            {"root": " Health ", "branch": "Nutrition", "leaf": "Vitamins"}
        )
        classifier = TaxonomyClassifier(config, caller)

        taxonomy = await classifier.classify("transcript", "Vitamin D explained")

        assert taxonomy.root == "Health"
        assert taxonomy.branch == "Nutrition"
        assert taxonomy.leaf == "Vitamins"

    @pytest.mark.asyncio
    async def test_prompt_contents(self, config: SemanticCoreConfig, caller: MagicMock) -> None:
        """Test the prompt carries the title and a truncated transcript."""
        caller.call.return_value = json_result({"root": "A", "branch": "B", "leaf": "C"})
        classifier = TaxonomyClassifier(config, caller)

        await classifier.classify("y" * 30 + "TAIL", "My Title")

        prompt, kind = caller.call.call_args.args
        assert kind == ResponseKind.JSON
        assert 'VIDEO: "My Title"' in prompt
        assert "y" * 20 in prompt
        assert "TAIL" not in prompt

    @pytest.mark.asyncio
    async def test_missing_leaf_is_allowed(
        self, config: SemanticCoreConfig, caller: MagicMock
    ) -> None:
        caller.call.return_value = json_result({"root": "Tech", "branch": "Web"})
        classifier = TaxonomyClassifier(config, caller)

        taxonomy = await classifier.classify("t", "x")

        assert taxonomy.leaf == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"branch": "Web", "leaf": "CSS"},
            {"root": "", "branch": "Web"},
            {"root": "Tech", "branch": "   "},
            ["Tech", "Web"],
        ],
    )
    async def test_incomplete_answer_fails(
        self, config: SemanticCoreConfig, caller: MagicMock, payload: object
    ) -> None:
        """Test answers without a usable root or branch are rejected."""
        caller.call.return_value = json_result(payload)
        classifier = TaxonomyClassifier(config, caller)

        with pytest.raises(ClassificationFailed):
            await classifier.classify("t", "x")

    @pytest.mark.asyncio
    async def test_exhausted_call_fails(self, config: SemanticCoreConfig, caller: MagicMock) -> None:
        caller.call.side_effect = CallExhausted(
            "all failed", trace=CallTrace(response_kind=ResponseKind.JSON)
        )
        classifier = TaxonomyClassifier(config, caller)

        with pytest.raises(ClassificationFailed):
            await classifier.classify("t", "x")
