"""
Inference Service -- REST front for the Hugging Face Inference API.

Responsibilities:
1. POST /v1/text/generate  -- text generation (POST /v1/text/complete is an alias)
2. POST /v1/text/sentiment -- sentiment classification
3. POST /v1/text/summarize -- summarization
4. GET  /v1/models/validate?model=<name> -- advisory model check
5. GET  /health, GET /metrics, GET /

Every call runs under a cancel signal that fires when the client goes away
or the per-call deadline passes; the transport observes it during the
upstream call and between retries.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, TypeVar

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from services.inference_service.config import AppConfig
from services.inference_service.middleware import error_response, install_middleware
from services.inference_service.ratelimit import build_limiter
from shared.inference import (
    CancellationError,
    CancelSignal,
    GenerationRequest,
    InferenceError,
    InferenceService,
    InvalidRequestError,
    SentimentRequest,
    SummarizeRequest,
    build_inference_service,
)
from shared.inference.cancellation import REASON_DISCONNECT
from shared.inference.errors import CANCELLED_ERROR, SERVICE_ERROR, VALIDATION_ERROR
from shared.logging.logger import setup_logging
from shared.observability.metrics import metrics_response

SERVICE_NAME = "inference_service"
VERSION = "1.0.0"

_DISCONNECT_POLL_SECONDS = 0.5

ModelT = TypeVar("ModelT", bound=BaseModel)

logger = logging.getLogger(SERVICE_NAME)


@asynccontextmanager
async def lifespan(application: FastAPI):
    cfg: AppConfig = application.state.config or AppConfig.from_env()
    setup_logging(SERVICE_NAME, cfg.logger.level, cfg.logger.format)
    cfg.validate()
    application.state.config = cfg

    hf = cfg.huggingface
    if application.state.service is None:
        application.state.service = build_inference_service(
            cfg.backend,
            base_url=hf.base_url,
            api_key=hf.api_key,
            timeout=hf.timeout,
            retry_attempts=hf.retry_attempts,
            retry_delay=hf.retry_delay,
            default_max_tokens=hf.max_tokens,
            default_temperature=hf.temperature,
        )
    application.state.limiter = build_limiter(hf.rate_limit_rpm, redis_url=cfg.redis_url)

    logger.info(
        "Inference Service ready",
        extra={
            "_extra": {
                "version": VERSION,
                "port": cfg.server.port,
                "log_level": cfg.logger.level,
                "model": hf.default_model,
                "backend": cfg.backend,
            }
        },
    )
    yield

    logger.info("Shutting down")
    await application.state.service.aclose()


async def _watch_disconnect(request: Request, cancel: CancelSignal) -> None:
    while not cancel.cancelled:
        if await request.is_disconnected():
            cancel.cancel(REASON_DISCONNECT)
            return
        await asyncio.sleep(_DISCONNECT_POLL_SECONDS)


@asynccontextmanager
async def _cancel_scope(request: Request) -> AsyncIterator[CancelSignal]:
    cfg: AppConfig = request.app.state.config
    cancel = CancelSignal.with_deadline(cfg.huggingface.request_deadline)
    watcher = asyncio.create_task(_watch_disconnect(request, cancel))
    try:
        yield cancel
    finally:
        watcher.cancel()
        cancel.close()


async def _decode(request: Request, model_cls: type[ModelT]) -> ModelT:
    try:
        return model_cls.model_validate_json(await request.body())
    except ValidationError as exc:
        raise InvalidRequestError(f"Invalid JSON: {exc}") from exc


async def _execute(
    request: Request,
    failure_message: str,
    call: Callable[[CancelSignal], Awaitable[BaseModel]],
) -> JSONResponse:
    """Run one inference call and map its outcome onto an HTTP response."""
    try:
        async with _cancel_scope(request) as cancel:
            result = await call(cancel)
    except InvalidRequestError as exc:
        return error_response(400, exc.message, VALIDATION_ERROR)
    except CancellationError as exc:
        return error_response(exc.http_status, exc.message, CANCELLED_ERROR)
    except InferenceError as exc:
        return error_response(500, failure_message, SERVICE_ERROR, details=str(exc))
    return JSONResponse(content=result.model_dump(mode="json"))


def _service(request: Request) -> InferenceService:
    return request.app.state.service


def create_app(config: AppConfig | None = None, service: InferenceService | None = None) -> FastAPI:
    application = FastAPI(
        title="Inference Service",
        version=VERSION,
        description="Text generation, sentiment and summarization over the Hugging Face Inference API",
        lifespan=lifespan,
    )
    application.state.config = config
    application.state.service = service
    application.state.limiter = None

    install_middleware(application)

    @application.get("/")
    async def index():
        return {
            "service": SERVICE_NAME,
            "version": VERSION,
            "endpoints": {
                "health": "GET /health",
                "metrics": "GET /metrics",
                "generate_text": "POST /v1/text/generate",
                "complete_text": "POST /v1/text/complete",
                "analyze_sentiment": "POST /v1/text/sentiment",
                "summarize_text": "POST /v1/text/summarize",
                "validate_model": "GET /v1/models/validate?model=<model_name>",
            },
        }

    @application.get("/health")
    async def health():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "version": VERSION,
        }

    @application.get("/metrics")
    async def metrics():
        return metrics_response()

    @application.post("/v1/text/generate")
    async def generate_text(request: Request):
        logger.info("Received text generation request")
        try:
            body = (await _decode(request, GenerationRequest)).stamp()
        except InvalidRequestError as exc:
            return error_response(400, exc.message, VALIDATION_ERROR)
        return await _execute(
            request,
            "Failed to generate text",
            lambda cancel: _service(request).generate_text(body, cancel),
        )

    @application.post("/v1/text/complete")
    async def generate_completion(request: Request):
        logger.info("Received completion request")
        try:
            body = (await _decode(request, GenerationRequest)).stamp()
        except InvalidRequestError as exc:
            return error_response(400, exc.message, VALIDATION_ERROR)
        return await _execute(
            request,
            "Failed to generate completion",
            lambda cancel: _service(request).generate_completion(body, cancel),
        )

    @application.post("/v1/text/sentiment")
    async def analyze_sentiment(request: Request):
        logger.info("Received sentiment analysis request")
        try:
            body = await _decode(request, SentimentRequest)
        except InvalidRequestError as exc:
            return error_response(400, exc.message, VALIDATION_ERROR)
        return await _execute(
            request,
            "Failed to analyze sentiment",
            lambda cancel: _service(request).analyze_sentiment(body.text, cancel),
        )

    @application.post("/v1/text/summarize")
    async def summarize_text(request: Request):
        logger.info("Received summarization request")
        try:
            body = await _decode(request, SummarizeRequest)
        except InvalidRequestError as exc:
            return error_response(400, exc.message, VALIDATION_ERROR)
        return await _execute(
            request,
            "Failed to summarize text",
            lambda cancel: _service(request).summarize_text(body.text, body.max_length, cancel),
        )

    @application.get("/v1/models/validate")
    async def validate_model(request: Request, model: str = Query(default="")):
        if not model:
            return error_response(400, "Model parameter is required", VALIDATION_ERROR)
        try:
            _service(request).validate_model(model)
        except InvalidRequestError as exc:
            return error_response(400, f"Invalid model: {exc.message}", VALIDATION_ERROR)
        return {"model": model, "valid": True}

    return application


app = create_app()


def run() -> None:
    cfg = AppConfig.from_env()
    uvicorn.run(
        "services.inference_service.main:app",
        host=cfg.server.host,
        port=cfg.server.port,
    )


if __name__ == "__main__":
    run()
