"""Abstract contract every inference backend implements."""

from __future__ import annotations

from abc import ABC, abstractmethod

from shared.inference.cancellation import CancelSignal
from shared.inference.models import (
    GenerationRequest,
    GenerationResult,
    SentimentResult,
    SummaryResult,
)

DEFAULT_SUMMARY_MAX_LENGTH = 130


class InferenceService(ABC):
    """
    Contract for inference backends.

    Every implementation MUST:
    - Validate the request before doing any work
    - Raise only InferenceError subclasses
    """

    @abstractmethod
    async def generate_text(
        self, request: GenerationRequest, cancel: CancelSignal | None = None
    ) -> GenerationResult:
        """Generate continuations for ``request.prompt``."""

    async def generate_completion(
        self, request: GenerationRequest, cancel: CancelSignal | None = None
    ) -> GenerationResult:
        """Alias of generate_text kept for the /complete route."""
        return await self.generate_text(request, cancel)

    @abstractmethod
    async def analyze_sentiment(
        self, text: str, cancel: CancelSignal | None = None
    ) -> SentimentResult:
        """Classify the sentiment of ``text``."""

    @abstractmethod
    async def summarize_text(
        self,
        text: str,
        max_length: int = DEFAULT_SUMMARY_MAX_LENGTH,
        cancel: CancelSignal | None = None,
    ) -> SummaryResult:
        """Summarize ``text`` to at most ``max_length`` tokens."""

    @abstractmethod
    def validate_model(self, model: str) -> None:
        """Raise InvalidRequestError when ``model`` is unusable."""

    async def aclose(self) -> None:
        """Release network resources, if any."""
