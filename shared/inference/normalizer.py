"""
Reshape raw upstream bodies into the gateway's result records.

The caller picks the path; payloads are never sniffed. Token counts are a
heuristic (four characters per token), not a tokenizer.
"""

from __future__ import annotations

from pydantic import TypeAdapter, ValidationError

from shared.inference.errors import ResponseParseError
from shared.inference.models import (
    FINISH_REASON_STOP,
    Choice,
    GeneratedItem,
    GenerationResult,
    LabelScore,
    SentimentResult,
    SummaryItem,
    SummaryResult,
    Usage,
)

CHARS_PER_TOKEN = 4

_generation_shape = TypeAdapter(list[GeneratedItem])
_sentiment_shape = TypeAdapter(list[list[LabelScore]])
_summary_shape = TypeAdapter(list[SummaryItem])


def estimate_tokens(text: str) -> int:
    return len(text) // CHARS_PER_TOKEN


def _parse(adapter: TypeAdapter, raw: bytes, what: str):
    try:
        return adapter.validate_json(raw)
    except ValidationError as exc:
        raise ResponseParseError(f"failed to parse {what} response", detail=str(exc)) from exc


def normalize_generation(
    raw: bytes,
    *,
    request_id: str,
    model: str,
    prompt: str,
    processing_ms: int = 0,
) -> GenerationResult:
    items = _parse(_generation_shape, raw, "generation")
    if not items:
        raise ResponseParseError("no response generated")

    choices: list[Choice] = []
    total_tokens = 0
    for index, item in enumerate(items):
        text = item.generated_text.removeprefix(prompt)
        choices.append(Choice(index=index, text=text, finish_reason=FINISH_REASON_STOP))
        total_tokens += (len(prompt) + len(text)) // CHARS_PER_TOKEN

    prompt_tokens = estimate_tokens(prompt)
    return GenerationResult(
        id=request_id,
        model=model,
        choices=choices,
        usage=Usage(
            prompt_tokens=prompt_tokens,
            completion_tokens=total_tokens - prompt_tokens,
            total_tokens=total_tokens,
        ),
        processing_ms=processing_ms,
    )


def pick_best_label(candidates: list[LabelScore]) -> LabelScore:
    """Highest score wins; on a tie the first-listed label is kept."""
    best = candidates[0]
    for candidate in candidates[1:]:
        if candidate.score > best.score:
            best = candidate
    return best


def normalize_sentiment(raw: bytes, *, text: str) -> SentimentResult:
    groups = _parse(_sentiment_shape, raw, "sentiment")
    if not groups or not groups[0]:
        raise ResponseParseError("no sentiment analysis result")

    best = pick_best_label(groups[0])
    return SentimentResult(
        text=text,
        sentiment=best.label,
        score=best.score,
        confidence=best.score,
    )


def compression_ratio(original: str, summary: str) -> float:
    if not original:
        return 0.0
    return len(summary) / len(original)


def normalize_summary(raw: bytes, *, text: str) -> SummaryResult:
    items = _parse(_summary_shape, raw, "summarization")
    if not items:
        raise ResponseParseError("no summarization result")

    # only the first candidate is used
    summary = items[0].summary_text
    return SummaryResult(
        original_text=text,
        summary=summary,
        compression=compression_ratio(text, summary),
    )
