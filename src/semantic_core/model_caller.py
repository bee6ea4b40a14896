"""Resilient caller for OpenAI-compatible generation and embedding endpoints.

Every attempt picks a credential from the pool (never the one used by the
previous attempt when there is a choice) and a model from the configured
list. Failed attempts are classified, backed off and recorded in a trace
that belongs to the call, so concurrent ingestions never share a log.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import openai

from src.utils.clients import get_llm_client
from src.utils.logging import get_logger

from .config import SemanticCoreConfig
from .exceptions import CallExhausted, ConfigurationError, ResponseParseError
from .parsing import parse_first
from .schemas import CallAttempt, CallResult, CallTrace, FailureKind, ResponseKind

logger = get_logger(__name__)

ClientFactory = Callable[[str, str], Any]
Sleep = Callable[[float], Awaitable[None]]

_RATE_LIMIT_MARKERS = ("429", "quota", "rate limit", "resource_exhausted")
_NOT_FOUND_MARKERS = ("404", "not found")
_CREDENTIAL_MARKERS = ("401", "403", "api key not valid", "api_key_invalid", "invalid api key")


def mask_credential(credential: str) -> str:
    """Return a log-safe hint for a credential."""
    return f"...{credential[-4:]}" if credential else "<none>"


def classify_failure(error: BaseException) -> FailureKind:
    """Classify an attempt failure.

    SDK exception types are checked first; the message is inspected as a
    fallback because some providers report errors with generic status codes.

    Args:
        error: Exception raised by the attempt.

    Returns:
        The failure kind.
    """
    if isinstance(error, ResponseParseError):
        return FailureKind.MALFORMED_RESPONSE
    if isinstance(error, openai.RateLimitError):
        return FailureKind.RATE_LIMIT
    if isinstance(error, openai.NotFoundError):
        return FailureKind.MODEL_NOT_FOUND
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return FailureKind.INVALID_CREDENTIAL

    message = str(error).lower()
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return FailureKind.RATE_LIMIT
    if any(marker in message for marker in _CREDENTIAL_MARKERS):
        return FailureKind.INVALID_CREDENTIAL
    if any(marker in message for marker in _NOT_FOUND_MARKERS):
        return FailureKind.MODEL_NOT_FOUND
    return FailureKind.OTHER


class ResilientModelCaller:
    """Issues generation requests with credential/model rotation and bounded retry."""

    def __init__(
        self,
        api_keys: Sequence[str],
        models: Sequence[str],
        base_url: str,
        max_attempts: int = 6,
        rate_limit_backoff: float = 2.0,
        error_backoff: float = 1.0,
        temperature: float = 0.4,
        client_factory: ClientFactory = get_llm_client,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        """Initialize the caller.

        Args:
            api_keys: Credential pool.
            models: Acceptable model identifiers, any of which may be picked.
            base_url: OpenAI-compatible API base URL.
            max_attempts: Attempt budget per call.
            rate_limit_backoff: Seconds to wait after a rate-limit failure.
            error_backoff: Seconds to wait after any other failure.
            temperature: Sampling temperature for generation requests.
            client_factory: Builds a client for (base_url, api_key).
            sleep: Awaitable used for backoff.
            rng: Random generator used for credential and model picks.

        Raises:
            ConfigurationError: If the pool or model list is empty.
        """
        if not api_keys:
            raise ConfigurationError("No API keys configured for the model caller")
        if not models:
            raise ConfigurationError("No models configured for the model caller")
        if max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")

        # Pool entries are unique so a different credential always exists
        self.api_keys = list(dict.fromkeys(api_keys))
        self.models = list(dict.fromkeys(models))
        self.base_url = base_url
        self.max_attempts = max_attempts
        self.rate_limit_backoff = rate_limit_backoff
        self.error_backoff = error_backoff
        self.temperature = temperature
        self._client_factory = client_factory
        self._sleep = sleep
        self._rng = rng or random.Random()

        logger.info(
            "model_caller_initialized",
            base_url=base_url,
            credentials=len(self.api_keys),
            models=self.models,
            max_attempts=max_attempts,
        )

    @classmethod
    def for_generation(cls, config: SemanticCoreConfig, **kwargs: Any) -> "ResilientModelCaller":
        """Build a caller for text/JSON generation from configuration."""
        return cls(
            api_keys=config.llm_api_keys,
            models=config.llm_models,
            base_url=config.llm_base_url,
            max_attempts=config.max_attempts,
            rate_limit_backoff=config.rate_limit_backoff_seconds,
            error_backoff=config.error_backoff_seconds,
            temperature=config.llm_temperature,
            **kwargs,
        )

    @classmethod
    def for_embeddings(cls, config: SemanticCoreConfig, **kwargs: Any) -> "ResilientModelCaller":
        """Build a caller for the embedding endpoint from configuration."""
        return cls(
            api_keys=config.embedding_api_keys,
            models=config.embedding_models,
            base_url=config.embedding_base_url,
            max_attempts=config.max_attempts,
            rate_limit_backoff=config.rate_limit_backoff_seconds,
            error_backoff=config.error_backoff_seconds,
            **kwargs,
        )

    def _pick_credential(self, previous: str | None) -> str:
        candidates = self.api_keys
        if previous is not None and len(self.api_keys) > 1:
            candidates = [key for key in self.api_keys if key != previous]
        return self._rng.choice(candidates)

    def _pick_model(self) -> str:
        return self._rng.choice(self.models)

    async def call(self, prompt: str, response_kind: ResponseKind) -> CallResult:
        """Send the prompt until an attempt succeeds or the budget is spent.

        Args:
            prompt: Prompt text (or text to embed for EMBEDDING).
            response_kind: TEXT returns a string, JSON returns the decoded
                structure, EMBEDDING returns a list of floats.

        Returns:
            CallResult with the payload and the trace of all attempts.

        Raises:
            CallExhausted: If every attempt failed; chained from the last error.
        """
        trace = CallTrace(response_kind=response_kind)
        diagnosed: set[str] = set()
        previous: str | None = None
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            credential = self._pick_credential(previous)
            previous = credential
            model = self._pick_model()
            client = self._client_factory(self.base_url, credential)

            try:
                payload = await self._request(client, model, prompt, response_kind)
            except Exception as e:
                last_error = e
                failure = classify_failure(e)
                is_last = attempt == self.max_attempts
                backoff = 0.0
                if not is_last:
                    backoff = (
                        self.rate_limit_backoff
                        if failure == FailureKind.RATE_LIMIT
                        else self.error_backoff
                    )

                trace.attempts.append(
                    CallAttempt(
                        attempt=attempt,
                        credential=mask_credential(credential),
                        model=model,
                        succeeded=False,
                        failure=failure,
                        error=str(e)[:200],
                        backoff_seconds=backoff,
                    )
                )
                logger.warning(
                    "model_call_attempt_failed",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    credential=mask_credential(credential),
                    model=model,
                    failure=failure.value,
                    error_type=type(e).__name__,
                )

                if failure == FailureKind.INVALID_CREDENTIAL and credential not in diagnosed:
                    diagnosed.add(credential)
                    trace.diagnostics.append(await self._diagnose(client, credential))

                if not is_last:
                    await self._sleep(backoff)
                continue

            trace.attempts.append(
                CallAttempt(
                    attempt=attempt,
                    credential=mask_credential(credential),
                    model=model,
                    succeeded=True,
                )
            )
            logger.info(
                "model_call_succeeded",
                attempt=attempt,
                model=model,
                response_kind=response_kind.value,
            )
            return CallResult(payload=payload, trace=trace)

        logger.error(
            "model_call_exhausted",
            attempts=len(trace.attempts),
            response_kind=response_kind.value,
            error_type=type(last_error).__name__,
        )
        raise CallExhausted(
            f"All {self.max_attempts} attempts failed: {last_error}",
            trace=trace,
            last_error=last_error,
        ) from last_error

    async def _request(
        self, client: Any, model: str, prompt: str, response_kind: ResponseKind
    ) -> Any:
        if response_kind == ResponseKind.EMBEDDING:
            response = await client.embeddings.create(input=prompt, model=model)
            return list(response.data[0].embedding)

        kwargs: dict[str, Any] = {}
        if response_kind == ResponseKind.JSON:
            kwargs["response_format"] = {"type": "json_object"}

        response = await client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
            **kwargs,
        )
        text = response.choices[0].message.content or ""

        if response_kind == ResponseKind.JSON:
            return parse_first(text)
        return text

    async def _diagnose(self, client: Any, credential: str) -> str:
        """List the models visible to a rejected credential, for the trace."""
        hint = mask_credential(credential)
        try:
            page = await client.models.list()
            names = [model.id.removeprefix("models/") for model in page.data]
        except Exception as e:
            logger.warning(
                "model_listing_failed", credential=hint, error_type=type(e).__name__
            )
            return f"{hint}: model listing failed ({type(e).__name__})"

        logger.info("model_listing", credential=hint, models=names[:10])
        return f"{hint}: available models {', '.join(names[:10])}"
