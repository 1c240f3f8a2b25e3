"""HTTP surface tests: routing, error mapping and middleware."""

from __future__ import annotations

from collections.abc import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient
from respx import MockRouter

from services.inference_service import main
from services.inference_service.main import create_app
from shared.inference import (
    CancellationError,
    HuggingFaceService,
    InferenceTransport,
    MockInferenceService,
    ResponseParseError,
    UpstreamClientError,
)
from shared.inference.base import InferenceService

from conftest import API_KEY, BASE_URL, make_config


class FailingService(MockInferenceService):
    """Mock backend whose every inference call raises ``error``."""

    def __init__(self, error: Exception) -> None:
        super().__init__()
        self._error = error

    async def generate_text(self, request, cancel=None):
        raise self._error

    async def analyze_sentiment(self, text, cancel=None):
        raise self._error

    async def summarize_text(self, text, max_length=130, cancel=None):
        raise self._error


def _client(service: InferenceService, **hf_overrides) -> TestClient:
    return TestClient(create_app(config=make_config(**hf_overrides), service=service))


@pytest.fixture
def mock_service() -> MockInferenceService:
    return MockInferenceService()


@pytest.fixture
def client(mock_service: MockInferenceService) -> Iterator[TestClient]:
    with _client(mock_service) as test_client:
        yield test_client


def test_index_lists_endpoints(client: TestClient) -> None:
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["endpoints"]["generate_text"] == "POST /v1/text/generate"


def test_health(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["service"] == "inference_service"


def test_metrics_are_exposed(client: TestClient) -> None:
    client.post("/v1/text/generate", json={"model": "gpt2", "prompt": "Hello"})
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "inference_requests_total" in r.text
    assert "http_requests_total" in r.text


def test_generate_assigns_id(client: TestClient, mock_service: MockInferenceService) -> None:
    r = client.post("/v1/text/generate", json={"model": "gpt2", "prompt": "Hello"})

    assert r.status_code == 200
    body = r.json()
    assert body["id"]
    assert body["choices"][0] == {
        "index": 0,
        "text": "Generated text for: Hello",
        "finish_reason": "stop",
    }
    assert mock_service.calls["generate_text"] == 1


def test_complete_is_an_alias(client: TestClient) -> None:
    r = client.post("/v1/text/complete", json={"id": "fixed", "model": "gpt2", "prompt": "Hello"})
    assert r.status_code == 200
    assert r.json()["id"] == "fixed"


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"model": "gpt2", "prompt": ""}, "prompt is required"),
        ({"model": "", "prompt": "x"}, "model is required"),
        ({"model": "gpt2", "prompt": "x", "temperature": 2}, "temperature must be between 0 and 1"),
        ({"model": "gpt2", "prompt": "x", "max_tokens": -5}, "max_tokens must be positive"),
    ],
)
def test_generate_validation_errors(client: TestClient, payload: dict, message: str) -> None:
    r = client.post("/v1/text/generate", json=payload)

    assert r.status_code == 400
    assert r.json() == {"code": 400, "message": message, "type": "validation_error"}


def test_undecodable_body(client: TestClient, mock_service: MockInferenceService) -> None:
    r = client.post(
        "/v1/text/generate", content=b"{not json", headers={"Content-Type": "application/json"}
    )

    assert r.status_code == 400
    assert r.json()["type"] == "validation_error"
    assert r.json()["message"].startswith("Invalid JSON")
    assert mock_service.calls["generate_text"] == 0


def test_sentiment(client: TestClient) -> None:
    r = client.post("/v1/text/sentiment", json={"text": "This is wonderful"})
    assert r.status_code == 200
    assert r.json() == {
        "text": "This is wonderful",
        "sentiment": "positive",
        "score": 0.8,
        "confidence": 0.8,
    }


@pytest.mark.parametrize("path", ["/v1/text/sentiment", "/v1/text/summarize"])
def test_text_is_required(client: TestClient, path: str) -> None:
    r = client.post(path, json={"text": ""})
    assert r.status_code == 400
    assert r.json()["message"] == "text is required"


def test_summarize(client: TestClient) -> None:
    r = client.post("/v1/text/summarize", json={"text": "abcdefghij"})
    assert r.status_code == 200
    assert set(r.json()) == {"original_text", "summary", "compression"}


def test_validate_model(client: TestClient) -> None:
    r = client.get("/v1/models/validate", params={"model": "anything/goes"})
    assert r.status_code == 200
    assert r.json() == {"model": "anything/goes", "valid": True}


def test_validate_model_requires_parameter(client: TestClient) -> None:
    r = client.get("/v1/models/validate")
    assert r.status_code == 400
    assert r.json()["message"] == "Model parameter is required"


@pytest.mark.parametrize(
    ("error", "details"),
    [
        (UpstreamClientError("Model not found", status_code=404), "API error (404): Model not found"),
        (
            UpstreamClientError("Model not found", status_code=404, model="gpt9"),
            "API error (404) [gpt9]: Model not found",
        ),
        (ResponseParseError("no response generated"), "no response generated"),
    ],
)
def test_service_failures_become_service_errors(error: Exception, details: str) -> None:
    with _client(FailingService(error)) as client:
        r = client.post("/v1/text/generate", json={"model": "gpt2", "prompt": "Hi"})

    assert r.status_code == 500
    assert r.json() == {
        "code": 500,
        "message": "Failed to generate text",
        "type": "service_error",
        "details": details,
    }


def test_cancellation_is_reported_distinctly() -> None:
    with _client(FailingService(CancellationError("deadline exceeded"))) as client:
        r = client.post("/v1/text/sentiment", json={"text": "hello"})

    assert r.status_code == 504
    assert r.json()["type"] == "cancelled_error"
    assert r.json()["message"] == "request cancelled: deadline exceeded"


def test_rate_limit() -> None:
    with _client(MockInferenceService(), rate_limit_rpm=2) as client:
        assert client.get("/health").status_code == 200
        assert client.get("/health").status_code == 200
        r = client.get("/health")

    assert r.status_code == 429
    assert r.json() == {"code": 429, "message": "Rate limit exceeded", "type": "rate_limit_error"}


def test_request_id_is_echoed(client: TestClient) -> None:
    r = client.get("/health", headers={"X-Request-ID": "trace-me"})
    assert r.headers["X-Request-ID"] == "trace-me"

    generated = client.get("/health").headers["X-Request-ID"]
    assert generated and generated != "trace-me"


def test_cors_preflight(client: TestClient) -> None:
    r = client.options(
        "/v1/text/generate",
        headers={
            "Origin": "https://example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "*"
    assert "POST" in r.headers["access-control-allow-methods"]


def test_end_to_end_against_stub_upstream(respx_mock: MockRouter) -> None:
    respx_mock.post(f"{BASE_URL}/models/gpt2").mock(
        return_value=httpx.Response(200, json=[{"generated_text": "Hi there!"}])
    )
    service = HuggingFaceService(InferenceTransport(BASE_URL, API_KEY, retry_attempts=0))

    with _client(service) as client:
        r = client.post(
            "/v1/text/generate",
            json={"model": "gpt2", "prompt": "Hi", "max_tokens": 10, "temperature": 0.5},
        )

    assert r.status_code == 200
    body = r.json()
    assert body["model"] == "gpt2"
    assert body["choices"] == [{"index": 0, "text": " there!", "finish_reason": "stop"}]
    assert body["usage"]["total_tokens"] == 2
    assert body["usage"]["total_tokens"] == (
        body["usage"]["prompt_tokens"] + body["usage"]["completion_tokens"]
    )


def test_upstream_4xx_over_http_is_single_attempt(respx_mock: MockRouter) -> None:
    route = respx_mock.post(f"{BASE_URL}/models/gpt2").mock(
        return_value=httpx.Response(401, json={"error": "Invalid credentials"})
    )
    service = HuggingFaceService(
        InferenceTransport(BASE_URL, API_KEY, retry_attempts=3, retry_delay=0.0)
    )

    with _client(service) as client:
        r = client.post("/v1/text/generate", json={"model": "gpt2", "prompt": "Hi"})

    assert r.status_code == 500
    assert r.json()["details"] == "API error (401) [gpt2]: Invalid credentials"
    assert route.call_count == 1


def test_unroutable_model_name_gets_a_json_validation_error(client: TestClient) -> None:
    r = client.post("/v1/text/generate", json={"model": "gpt2\n", "prompt": "Hi"})

    assert r.status_code == 400
    assert r.headers["content-type"] == "application/json"
    assert r.json() == {
        "code": 400,
        "message": "model contains invalid characters",
        "type": "validation_error",
    }


def test_validate_rejects_unroutable_model_name(client: TestClient) -> None:
    r = client.get("/v1/models/validate", params={"model": "gpt2 x"})

    assert r.status_code == 400
    assert r.json()["message"] == "Invalid model: model name contains invalid characters"


def test_failed_call_is_not_logged_again_by_the_handler(monkeypatch: pytest.MonkeyPatch) -> None:
    handler_errors: list[tuple] = []
    monkeypatch.setattr(main.logger, "error", lambda *args, **kwargs: handler_errors.append(args))

    with _client(FailingService(UpstreamClientError("nope", status_code=404))) as client:
        r = client.post("/v1/text/generate", json={"model": "gpt2", "prompt": "Hi"})

    assert r.status_code == 500
    assert handler_errors == []
