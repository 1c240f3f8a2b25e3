"""
Outbound transport to the Hugging Face Inference API.

Owns the shared connection pool, the per-call timeout and the retry policy:

- attempts = retry_attempts + 1, strictly sequential
- fixed delay before every attempt after the first, interruptible by the
  call's cancel signal
- network failures and non-4xx error statuses are retried, 4xx stops at once
- a 2xx body is handed back untouched; parsing belongs to the normalizer
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from shared.inference.cancellation import CancelSignal
from shared.inference.errors import (
    UpstreamClientError,
    UpstreamError,
    UpstreamTransientError,
)
from shared.inference.models import UpstreamErrorBody
from shared.observability.metrics import upstream_attempts

logger = logging.getLogger(__name__)

USER_AGENT = "inference-gateway/1.0"


class InferenceTransport:
    """Thin retrying client around a single httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._retry_attempts = max(retry_attempts, 0)
        self._retry_delay = max(retry_delay, 0.0)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def max_attempts(self) -> int:
        return self._retry_attempts + 1

    def url_for(self, model_id: str) -> str:
        return f"{self._base_url}/models/{model_id}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

    async def send(
        self,
        model_id: str,
        payload: dict[str, Any],
        cancel: CancelSignal | None = None,
    ) -> bytes:
        """
        POST ``payload`` to the model endpoint and return the raw 2xx body.

        Raises UpstreamClientError on 4xx, UpstreamTransientError once the
        retry budget is spent, CancellationError when ``cancel`` fires.
        """
        cancel = cancel or CancelSignal()
        body = json.dumps(payload).encode()
        url = self.url_for(model_id)
        last_error: UpstreamError = UpstreamTransientError("no attempt made", model=model_id)

        for attempt in range(self.max_attempts):
            if attempt > 0:
                await cancel.sleep(self._retry_delay)
                logger.info(
                    "Retrying request",
                    extra={"_extra": {"attempt": attempt, "model": model_id}},
                )

            # httpx requests are single-use; rebuild the body for every attempt
            try:
                request = self._client.build_request(
                    "POST", url, content=body, headers=self._headers()
                )
            except (httpx.InvalidURL, httpx.HTTPError) as exc:
                raise UpstreamClientError(
                    f"invalid model endpoint: {exc}", model=model_id, attempts=attempt + 1
                ) from exc
            try:
                response = await cancel.race(self._client.send(request))
            except httpx.HTTPError as exc:
                upstream_attempts.labels(model=model_id, outcome="network_error").inc()
                last_error = UpstreamTransientError(
                    f"HTTP request failed: {exc}", model=model_id, attempts=attempt + 1
                )
                continue

            if response.is_success:
                upstream_attempts.labels(model=model_id, outcome="success").inc()
                return response.content

            last_error = _error_from_response(response, model_id, attempt + 1)
            if not last_error.retryable:
                upstream_attempts.labels(model=model_id, outcome="client_error").inc()
                break
            upstream_attempts.labels(model=model_id, outcome="server_error").inc()

        raise last_error

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _error_from_response(response: httpx.Response, model_id: str, attempts: int) -> UpstreamError:
    status = response.status_code
    error_cls = UpstreamClientError if 400 <= status < 500 else UpstreamTransientError

    try:
        parsed = UpstreamErrorBody.model_validate_json(response.content)
    except ValidationError:
        return error_cls(
            response.text, status_code=status, model=model_id, attempts=attempts
        )
    return error_cls(
        parsed.error,
        status_code=status,
        detail=parsed.message or None,
        model=model_id,
        attempts=attempts,
    )
