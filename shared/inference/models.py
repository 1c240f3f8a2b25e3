"""Data models for the inference layer: caller-facing records and upstream shapes."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, StrictBool, StrictFloat, StrictInt, StrictStr

from shared.inference.errors import InvalidRequestError

ParamValue = StrictBool | StrictInt | StrictFloat | StrictStr

FINISH_REASON_STOP = "stop"

# Hub ids: "gpt2", "org/name", "org/name-v1.5"
MODEL_NAME_PATTERN = re.compile(r"[\w.\-/]+")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GenerationRequest(BaseModel):
    """
    Caller request for text generation.

    Field types are enforced at decode time; the domain invariants
    (non-empty prompt and model, ranges) are checked by ``validate_request``
    so they surface as a validation failure instead of a schema error.
    ``max_tokens`` and ``temperature`` left as None take the configured defaults.
    """

    id: str = ""
    model: str = ""
    prompt: str = ""
    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float = 1.0
    parameters: dict[str, ParamValue] = Field(default_factory=dict)
    created_at: datetime | None = None

    def stamp(self) -> GenerationRequest:
        """Assign an id when absent and set the creation timestamp."""
        if not self.id:
            self.id = str(uuid.uuid4())
        self.created_at = _utcnow()
        return self

    def validate_request(self) -> None:
        if not self.prompt:
            raise InvalidRequestError("prompt is required")
        if not self.model:
            raise InvalidRequestError("model is required")
        if not MODEL_NAME_PATTERN.fullmatch(self.model):
            raise InvalidRequestError("model contains invalid characters")
        if self.max_tokens is not None and self.max_tokens < 0:
            raise InvalidRequestError("max_tokens must be positive")
        if self.temperature is not None and not 0.0 <= self.temperature <= 1.0:
            raise InvalidRequestError("temperature must be between 0 and 1")


class SentimentRequest(BaseModel):
    text: str = ""


class SummarizeRequest(BaseModel):
    text: str = ""
    max_length: int = 0


class Choice(BaseModel):
    index: int
    text: str
    finish_reason: str = FINISH_REASON_STOP


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class GenerationResult(BaseModel):
    id: str
    model: str
    choices: list[Choice]
    usage: Usage
    generated_at: datetime = Field(default_factory=_utcnow)
    processing_ms: int = 0


class SentimentResult(BaseModel):
    text: str
    sentiment: str
    score: float
    confidence: float


class SummaryResult(BaseModel):
    original_text: str
    summary: str
    compression: float


class ErrorResponse(BaseModel):
    """JSON error body returned to every caller on failure."""

    code: int
    message: str
    type: str
    details: Any = None


# ---------------------------------------------------------------------------
# Upstream (Hugging Face Inference API) shapes
# ---------------------------------------------------------------------------


class UpstreamRequest(BaseModel):
    inputs: str
    parameters: dict[str, Any] | None = None
    options: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class GeneratedItem(BaseModel):
    generated_text: StrictStr = ""


class LabelScore(BaseModel):
    label: StrictStr = ""
    score: float = 0.0


class SummaryItem(BaseModel):
    summary_text: StrictStr = ""


class UpstreamErrorBody(BaseModel):
    error: str
    message: str = ""
