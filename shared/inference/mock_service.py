"""
Deterministic mock inference backend for development and tests.

Produces stable results without network calls while honouring the same
validation rules as the real backend. Calls are counted per operation.
"""

from __future__ import annotations

from collections import Counter

from shared.inference.base import DEFAULT_SUMMARY_MAX_LENGTH, InferenceService
from shared.inference.cancellation import CancelSignal
from shared.inference.errors import InvalidRequestError
from shared.inference.models import (
    MODEL_NAME_PATTERN,
    Choice,
    GenerationRequest,
    GenerationResult,
    SentimentResult,
    SummaryResult,
    Usage,
)
from shared.inference.normalizer import compression_ratio, estimate_tokens

_MOCK_PREFIX = "Generated text for: "
_MOCK_COMPLETION_TOKENS = 20


class MockInferenceService(InferenceService):

    def __init__(self) -> None:
        self.calls: Counter[str] = Counter()

    async def generate_text(
        self, request: GenerationRequest, cancel: CancelSignal | None = None
    ) -> GenerationResult:
        self.calls["generate_text"] += 1
        request.validate_request()
        if cancel:
            cancel.raise_if_cancelled()

        prompt_tokens = estimate_tokens(request.prompt)
        return GenerationResult(
            id=request.id,
            model=request.model,
            choices=[Choice(index=0, text=_MOCK_PREFIX + request.prompt)],
            usage=Usage(
                prompt_tokens=prompt_tokens,
                completion_tokens=_MOCK_COMPLETION_TOKENS,
                total_tokens=prompt_tokens + _MOCK_COMPLETION_TOKENS,
            ),
            processing_ms=100,
        )

    async def analyze_sentiment(
        self, text: str, cancel: CancelSignal | None = None
    ) -> SentimentResult:
        self.calls["analyze_sentiment"] += 1
        if not text:
            raise InvalidRequestError("text is required")

        sentiment, score = ("negative", 0.3) if len(text) < 10 else ("positive", 0.8)
        return SentimentResult(text=text, sentiment=sentiment, score=score, confidence=score)

    async def summarize_text(
        self,
        text: str,
        max_length: int = DEFAULT_SUMMARY_MAX_LENGTH,
        cancel: CancelSignal | None = None,
    ) -> SummaryResult:
        self.calls["summarize_text"] += 1
        if not text:
            raise InvalidRequestError("text is required")
        if max_length <= 0:
            max_length = DEFAULT_SUMMARY_MAX_LENGTH

        summary = text[: max(len(text) // 2, 1)][:max_length]
        return SummaryResult(
            original_text=text,
            summary=summary,
            compression=compression_ratio(text, summary),
        )

    def validate_model(self, model: str) -> None:
        self.calls["validate_model"] += 1
        if not model:
            raise InvalidRequestError("model name cannot be empty")
        if not MODEL_NAME_PATTERN.fullmatch(model):
            raise InvalidRequestError("model name contains invalid characters")
