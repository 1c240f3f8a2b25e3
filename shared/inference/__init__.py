from shared.inference.base import InferenceService
from shared.inference.cancellation import CancelSignal
from shared.inference.errors import (
    CancellationError,
    InferenceError,
    InvalidRequestError,
    ResponseParseError,
    UpstreamClientError,
    UpstreamError,
    UpstreamTransientError,
)
from shared.inference.factory import build_inference_service
from shared.inference.huggingface import HuggingFaceService
from shared.inference.mock_service import MockInferenceService
from shared.inference.models import (
    Choice,
    ErrorResponse,
    GenerationRequest,
    GenerationResult,
    SentimentRequest,
    SentimentResult,
    SummarizeRequest,
    SummaryResult,
    Usage,
)
from shared.inference.transport import InferenceTransport

__all__ = [
    "InferenceService",
    "HuggingFaceService",
    "MockInferenceService",
    "InferenceTransport",
    "CancelSignal",
    "build_inference_service",
    "InferenceError",
    "InvalidRequestError",
    "UpstreamError",
    "UpstreamClientError",
    "UpstreamTransientError",
    "CancellationError",
    "ResponseParseError",
    "GenerationRequest",
    "GenerationResult",
    "Choice",
    "Usage",
    "SentimentRequest",
    "SentimentResult",
    "SummarizeRequest",
    "SummaryResult",
    "ErrorResponse",
]
