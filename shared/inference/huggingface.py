"""
Hugging Face backed inference service.

Validates the caller's request, builds the upstream payload, drives the
transport and hands the raw body to the normalizer. Errors from the
transport and the normalizer propagate unchanged; this layer adds no retry.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator

from shared.inference.base import DEFAULT_SUMMARY_MAX_LENGTH, InferenceService
from shared.inference.cancellation import CancelSignal
from shared.inference.errors import InferenceError, InvalidRequestError
from shared.inference.models import (
    MODEL_NAME_PATTERN,
    GenerationRequest,
    GenerationResult,
    SentimentResult,
    SummaryResult,
    UpstreamRequest,
)
from shared.inference.normalizer import (
    normalize_generation,
    normalize_sentiment,
    normalize_summary,
)
from shared.inference.transport import InferenceTransport
from shared.observability.metrics import (
    inference_duration,
    inference_requests,
    inference_tokens,
)

logger = logging.getLogger(__name__)

SENTIMENT_MODEL = "cardiffnlp/twitter-roberta-base-sentiment-latest"
SUMMARIZATION_MODEL = "facebook/bart-large-cnn"

SUPPORTED_MODELS: frozenset[str] = frozenset(
    {
        "gpt2",
        "gpt2-medium",
        "gpt2-large",
        "gpt2-xl",
        "microsoft/DialoGPT-medium",
        "microsoft/DialoGPT-large",
        SUMMARIZATION_MODEL,
        SENTIMENT_MODEL,
    }
)

_PROMPT_PREVIEW_CHARS = 100


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


@contextmanager
def _track(operation: str, **fields: Any) -> Iterator[float]:
    """Time one operation, count its outcome and log it if it fails."""
    start = time.monotonic()
    try:
        with inference_duration.labels(operation=operation).time():
            yield start
    except InferenceError as exc:
        inference_requests.labels(operation=operation, outcome=exc.error_type).inc()
        logger.error(
            "Inference operation failed",
            extra={
                "_extra": {
                    **fields,
                    "operation": operation,
                    "error": str(exc),
                    "error_type": exc.error_type,
                    "processing_ms": _elapsed_ms(start),
                }
            },
        )
        raise
    inference_requests.labels(operation=operation, outcome="success").inc()


class HuggingFaceService(InferenceService):

    def __init__(
        self,
        transport: InferenceTransport,
        default_max_tokens: int = 100,
        default_temperature: float = 0.7,
    ) -> None:
        self._transport = transport
        self._default_max_tokens = default_max_tokens
        self._default_temperature = default_temperature

    def build_generation_payload(self, request: GenerationRequest) -> UpstreamRequest:
        """Base parameters overlaid with the caller's extras; caller wins on collision."""
        max_tokens = request.max_tokens if request.max_tokens else self._default_max_tokens
        temperature = (
            request.temperature
            if request.temperature is not None
            else self._default_temperature
        )
        parameters: dict[str, Any] = {
            "max_new_tokens": max_tokens,
            "temperature": temperature,
            "top_p": request.top_p,
        }
        parameters.update(request.parameters)
        return UpstreamRequest(
            inputs=request.prompt,
            parameters=parameters,
            options={"wait_for_model": True},
        )

    async def generate_text(
        self, request: GenerationRequest, cancel: CancelSignal | None = None
    ) -> GenerationResult:
        with _track("generate", request_id=request.id, model=request.model) as start:
            request.validate_request()
            self.validate_model(request.model)

            logger.info(
                "Starting text generation",
                extra={
                    "_extra": {
                        "request_id": request.id,
                        "model": request.model,
                        "prompt": request.prompt[:_PROMPT_PREVIEW_CHARS] + "...",
                    }
                },
            )

            payload = self.build_generation_payload(request)
            raw = await self._transport.send(request.model, payload.to_payload(), cancel)
            result = normalize_generation(
                raw,
                request_id=request.id,
                model=request.model,
                prompt=request.prompt,
                processing_ms=_elapsed_ms(start),
            )

        inference_tokens.labels(direction="prompt").inc(result.usage.prompt_tokens)
        inference_tokens.labels(direction="completion").inc(result.usage.completion_tokens)
        logger.info(
            "Text generation completed",
            extra={
                "_extra": {
                    "request_id": request.id,
                    "processing_ms": result.processing_ms,
                    "total_tokens": result.usage.total_tokens,
                }
            },
        )
        return result

    async def analyze_sentiment(
        self, text: str, cancel: CancelSignal | None = None
    ) -> SentimentResult:
        with _track("sentiment", model=SENTIMENT_MODEL):
            if not text:
                raise InvalidRequestError("text is required")
            logger.info(
                "Starting sentiment analysis",
                extra={"_extra": {"text_length": len(text)}},
            )
            payload = UpstreamRequest(inputs=text)
            raw = await self._transport.send(SENTIMENT_MODEL, payload.to_payload(), cancel)
            return normalize_sentiment(raw, text=text)

    async def summarize_text(
        self,
        text: str,
        max_length: int = DEFAULT_SUMMARY_MAX_LENGTH,
        cancel: CancelSignal | None = None,
    ) -> SummaryResult:
        with _track("summarize", model=SUMMARIZATION_MODEL):
            if not text:
                raise InvalidRequestError("text is required")
            if max_length <= 0:
                max_length = DEFAULT_SUMMARY_MAX_LENGTH

            logger.info(
                "Starting text summarization",
                extra={"_extra": {"text_length": len(text), "max_length": max_length}},
            )
            payload = UpstreamRequest(
                inputs=text,
                parameters={"max_length": max_length, "min_length": max_length // 4},
            )
            raw = await self._transport.send(SUMMARIZATION_MODEL, payload.to_payload(), cancel)
            return normalize_summary(raw, text=text)

    def validate_model(self, model: str) -> None:
        """Advisory allow-list: unknown names are logged, never rejected."""
        if not model:
            raise InvalidRequestError("model name cannot be empty")
        if not MODEL_NAME_PATTERN.fullmatch(model):
            raise InvalidRequestError("model name contains invalid characters")
        if model not in SUPPORTED_MODELS:
            logger.warning(
                "Using unvalidated model", extra={"_extra": {"model": model}}
            )

    async def aclose(self) -> None:
        await self._transport.aclose()
