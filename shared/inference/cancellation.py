"""Per-call cancellation signal shared by the HTTP layer and the transport."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, TypeVar

from shared.inference.errors import CancellationError

T = TypeVar("T")

REASON_DEADLINE = "deadline exceeded"
REASON_DISCONNECT = "client disconnected"

# 499 is the de-facto "client closed request" status
_REASON_STATUS = {REASON_DEADLINE: 504, REASON_DISCONNECT: 499}


class CancelSignal:
    """
    One-shot signal bound to the lifetime of a single logical call.

    The first ``cancel()`` wins; its reason is what the resulting
    CancellationError reports.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._timer: asyncio.TimerHandle | None = None

    @classmethod
    def with_deadline(cls, seconds: float | None) -> CancelSignal:
        signal = cls()
        if seconds and seconds > 0:
            loop = asyncio.get_running_loop()
            signal._timer = loop.call_later(seconds, signal.cancel, REASON_DEADLINE)
        return signal

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    def close(self) -> None:
        """Release the deadline timer once the call is over."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def error(self) -> CancellationError:
        reason = self._reason or "cancelled"
        return CancellationError(reason, http_status=_REASON_STATUS.get(reason, 504))

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise self.error()

    async def sleep(self, delay: float) -> None:
        """Wait ``delay`` seconds; raise CancellationError as soon as the signal fires."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise self.error()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """Run ``awaitable`` until it finishes or the signal fires, whichever is first."""
        self.raise_if_cancelled()
        work: asyncio.Future[Any] = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()
        if work.done():
            return work.result()
        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        raise self.error()
