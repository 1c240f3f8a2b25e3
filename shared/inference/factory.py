"""
Backend factory -- single entry point for building the inference service.

Reads INFERENCE_BACKEND (default: 'huggingface'):

  huggingface  Hugging Face Inference API -- needs HUGGINGFACE_API_KEY
  mock         Built-in deterministic mock, no network and no key needed
"""

from __future__ import annotations

import logging
import os

import httpx

from shared.inference.base import InferenceService
from shared.inference.huggingface import HuggingFaceService
from shared.inference.mock_service import MockInferenceService
from shared.inference.transport import InferenceTransport

logger = logging.getLogger(__name__)

BACKENDS = ("huggingface", "mock")


def build_inference_service(
    backend: str | None = None,
    *,
    base_url: str = "https://api-inference.huggingface.co",
    api_key: str = "",
    timeout: float = 30.0,
    retry_attempts: int = 3,
    retry_delay: float = 1.0,
    default_max_tokens: int = 100,
    default_temperature: float = 0.7,
    client: httpx.AsyncClient | None = None,
) -> InferenceService:
    name = (backend or os.environ.get("INFERENCE_BACKEND", "huggingface")).lower()

    if name == "mock":
        logger.info("Inference backend initialized: mock")
        return MockInferenceService()

    if name != "huggingface":
        raise ValueError(
            f"Unknown inference backend '{name}'. Available: {', '.join(BACKENDS)}"
        )

    transport = InferenceTransport(
        base_url=base_url,
        api_key=api_key,
        retry_attempts=retry_attempts,
        retry_delay=retry_delay,
        timeout=timeout,
        client=client,
    )
    logger.info(
        "Inference backend initialized: %s (base_url=%s, retries=%d)",
        name,
        base_url,
        retry_attempts,
    )
    return HuggingFaceService(
        transport,
        default_max_tokens=default_max_tokens,
        default_temperature=default_temperature,
    )
