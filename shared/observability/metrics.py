from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)
from fastapi import Response


inference_requests = Counter(
    "inference_requests_total",
    "Inference operations by outcome",
    ["operation", "outcome"],
)

inference_duration = Histogram(
    "inference_duration_seconds",
    "Wall-clock time of an inference operation, retries included",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

upstream_attempts = Counter(
    "upstream_attempts_total",
    "Outbound calls to the inference API, one per attempt",
    ["model", "outcome"],
)

inference_tokens = Counter(
    "inference_tokens_total",
    "Estimated tokens processed",
    ["direction"],
)

http_requests = Counter(
    "http_requests_total",
    "HTTP requests served",
    ["method", "path", "status"],
)

rate_limited_requests = Counter(
    "rate_limited_requests_total",
    "Requests rejected by the rate limiter",
)


def metrics_response() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
