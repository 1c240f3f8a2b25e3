"""Shared fixtures for the inference gateway test suite."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import replace

import httpx
import pytest

from services.inference_service.config import (
    AppConfig,
    HuggingFaceConfig,
    LoggerConfig,
    ServerConfig,
)
from shared.inference import HuggingFaceService, InferenceTransport

BASE_URL = "https://hf.test"
API_KEY = "hf_test_key"


def make_config(**hf_overrides) -> AppConfig:
    """AppConfig for tests; no environment involved."""
    hf = HuggingFaceConfig(
        api_key=API_KEY,
        base_url=BASE_URL,
        default_model="gpt2",
        timeout=5.0,
        retry_attempts=0,
        retry_delay=0.0,
        max_tokens=100,
        temperature=0.7,
        rate_limit_rpm=1000,
        request_deadline=5.0,
    )
    return AppConfig(
        server=ServerConfig(host="localhost", port=8080),
        huggingface=replace(hf, **hf_overrides),
        logger=LoggerConfig(level="info", format="json"),
        backend="mock",
        redis_url=None,
    )


@pytest.fixture
def app_config() -> AppConfig:
    return make_config()


@pytest.fixture
async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    """Real httpx client so respx can intercept it."""
    async with httpx.AsyncClient(timeout=5.0) as client:
        yield client


@pytest.fixture
def transport_factory(http_client: httpx.AsyncClient):
    def _build(retry_attempts: int = 0, retry_delay: float = 0.0) -> InferenceTransport:
        return InferenceTransport(
            base_url=BASE_URL,
            api_key=API_KEY,
            retry_attempts=retry_attempts,
            retry_delay=retry_delay,
            client=http_client,
        )

    return _build


@pytest.fixture
def hf_service(transport_factory) -> HuggingFaceService:
    return HuggingFaceService(transport_factory(), default_max_tokens=100, default_temperature=0.7)
