"""
Per-client rate limiting via slowapi.

One application-wide budget per client IP, counted over a moving window
across every route. In-memory by default (per process); pass redis_url to
share the window across replicas.
"""

from __future__ import annotations

import logging

from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)


def build_limiter(
    requests_per_window: int,
    redis_url: str | None = None,
    period: str = "minute",
) -> Limiter:
    """A limit of zero or less disables limiting."""
    limit = f"{max(requests_per_window, 1)}/{period}"
    if redis_url:
        logger.info("Rate limiter using Redis backend")
        return Limiter(
            key_func=get_remote_address,
            application_limits=[limit],
            strategy="moving-window",
            storage_uri=redis_url,
            enabled=requests_per_window > 0,
        )
    return Limiter(
        key_func=get_remote_address,
        application_limits=[limit],
        strategy="moving-window",
        enabled=requests_per_window > 0,
    )
