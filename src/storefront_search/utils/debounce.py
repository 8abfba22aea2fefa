"""Trailing-edge debouncing on top of the asyncio event loop."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")

SettleCallback = Callable[[T], None]


class Debouncer(Generic[T]):
    """Propagate the latest pushed value once input has been quiet for ``delay_ms``.

    Each :meth:`push` cancels the pending timer and starts a new one, so only
    the value of the last push in a burst settles. Settling updates
    :attr:`value` and invokes ``on_settle`` synchronously from the timer task.
    There is no leading-edge emission and no maximum wait: a steady stream of
    pushes spaced closer than ``delay_ms`` never settles.

    A cancelled or closed debouncer never settles a pending value.
    """

    def __init__(
        self,
        initial: T,
        delay_ms: int,
        on_settle: SettleCallback[T] | None = None,
    ) -> None:
        if delay_ms < 0:
            raise ValueError("delay_ms must be zero or positive")
        self._value = initial
        self._delay = delay_ms / 1000
        self._on_settle = on_settle
        self._pending: T | None = None
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def value(self) -> T:
        """Last settled value (the initial value until something settles)."""
        return self._value

    @property
    def delay_ms(self) -> int:
        """Configured quiet period in milliseconds."""
        return int(self._delay * 1000)

    @property
    def pending(self) -> bool:
        """Return whether a pushed value is waiting for its quiet period."""
        return self._task is not None and not self._task.done()

    @property
    def closed(self) -> bool:
        """Return whether :meth:`aclose` has been called."""
        return self._closed

    def push(self, value: T) -> None:
        """Record *value* and restart the quiet-period timer."""
        if self._closed:
            raise RuntimeError("Debouncer is closed")
        self._cancel_timer()
        self._pending = value
        self._task = asyncio.get_running_loop().create_task(self._settle_later(value))

    def flush(self) -> bool:
        """Settle the pending value immediately; return whether one was pending."""
        if not self.pending:
            return False
        value = self._pending
        self._cancel_timer()
        self._settle(value)  # type: ignore[arg-type]
        return True

    def cancel(self) -> None:
        """Drop the pending value without settling it."""
        self._cancel_timer()
        self._pending = None

    async def wait(self) -> None:
        """Wait until the pending timer either settles or gets cancelled."""
        task = self._task
        if task is None:
            return
        await asyncio.wait({task})

    async def aclose(self) -> None:
        """Cancel the pending timer and refuse further pushes."""
        self._closed = True
        task = self._task
        self.cancel()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _cancel_timer(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()

    async def _settle_later(self, value: T) -> None:
        await asyncio.sleep(self._delay)
        # The task reference is released first so a push issued from within
        # ``on_settle`` schedules a new timer instead of cancelling this one.
        self._task = None
        self._settle(value)

    def _settle(self, value: T) -> None:
        self._pending = None
        self._value = value
        if self._on_settle is not None:
            logger.bind(delay_ms=self.delay_ms).debug("debounce.settled")
            self._on_settle(value)


__all__ = ["Debouncer", "SettleCallback"]
