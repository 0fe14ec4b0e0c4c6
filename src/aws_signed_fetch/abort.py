# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Cooperative cancellation for signed fetches.

An :py:class:`AbortSignal` is set at most once. Timeouts and caller supplied
signals are merged with :py:meth:`AbortSignal.any` so that a call only has to
watch a single signal, whichever source fires first.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator
from contextlib import contextmanager
from inspect import iscoroutine
from typing import Self

from .exceptions import RequestAbortedException

_LOGGER = logging.getLogger(__name__)

type AbortListener = Callable[["AbortSignal"], None]


class AbortSignal:
    """A one-shot cancellation token.

    Signals are not thread safe, :py:meth:`abort` must be called from the thread
    running the event loop that awaits the signal.
    """

    def __init__(self) -> None:
        self._aborted = False
        self._reason: BaseException | None = None
        self._event = asyncio.Event()
        self._listeners: list[AbortListener] = []
        self._timer: asyncio.TimerHandle | None = None
        self._detach: list[Callable[[], None]] = []

    @classmethod
    def timeout(cls, seconds: float) -> Self:
        """Create a signal that aborts itself after ``seconds``.

        Must be called with a running event loop. Call :py:meth:`close` once the
        guarded work is done to release the timer.
        """
        signal = cls()
        loop = asyncio.get_running_loop()
        signal._timer = loop.call_later(
            seconds,
            signal.abort,
            TimeoutError(f"Timed out after {seconds} seconds"),
        )
        return signal

    @classmethod
    def any(cls, signals: Iterable["AbortSignal"]) -> Self:
        """Create a signal that aborts as soon as any of ``signals`` aborts.

        The composite takes the reason of the first source to fire. If a source is
        already aborted the composite is returned aborted.
        """
        composite = cls()
        for source in signals:
            if source.aborted:
                composite.abort(source.reason)
                break
            composite._detach.append(
                source.add_listener(lambda fired: composite.abort(fired.reason))
            )
        return composite

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> BaseException | None:
        """The reason passed to :py:meth:`abort`, if any."""
        return self._reason

    def abort(self, reason: BaseException | None = None) -> None:
        """Set the signal. Only the first call has any effect."""
        if self._aborted:
            return
        _LOGGER.debug("Abort signal set: %r", reason)
        self._aborted = True
        self._reason = reason
        self._event.set()
        self.close()
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(self)

    def add_listener(self, listener: AbortListener) -> Callable[[], None]:
        """Register a callback invoked once when the signal aborts.

        :returns: A callable that unregisters the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def raise_if_aborted(self) -> None:
        """:raises RequestAbortedException: If the signal has been aborted."""
        if self._aborted:
            raise RequestAbortedException(self._reason)

    async def wait(self) -> None:
        """Wait until the signal is aborted."""
        await self._event.wait()

    def close(self) -> None:
        """Release the timer and stop following any source signals."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        detach, self._detach = self._detach, []
        for remove in detach:
            remove()


@contextmanager
def effective_signal(
    signal: AbortSignal | None, timeout: float | None
) -> Iterator[AbortSignal | None]:
    """Merge a caller signal and a timeout into the one signal a call watches.

    A ``timeout`` of ``None`` or ``0`` arms no timer. The timer is released when
    the block exits.

    :raises ValueError: If ``timeout`` is negative.
    """
    if timeout is not None and timeout < 0:
        raise ValueError(f"timeout must not be negative, got {timeout}.")
    if not timeout:
        yield signal
        return

    timer = AbortSignal.timeout(timeout)
    merged = AbortSignal.any([timer] if signal is None else [timer, signal])
    try:
        yield merged
    finally:
        merged.close()
        timer.close()


async def run_abortable[T](
    awaitable: Awaitable[T], signal: AbortSignal | None
) -> T:
    """Await ``awaitable`` unless ``signal`` aborts first.

    When the signal wins, the pending work is cancelled and awaited before
    :py:class:`RequestAbortedException` is raised.

    :raises RequestAbortedException: If the signal aborts before completion.
    """
    if signal is None:
        return await awaitable
    if signal.aborted:
        if iscoroutine(awaitable):
            awaitable.close()
        raise RequestAbortedException(signal.reason)

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait((task, waiter), return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()

    if task.done() and not task.cancelled():
        return task.result()

    # Let the cancelled work unwind before reporting the abort.
    await asyncio.wait((task,))
    if not signal.aborted:
        raise asyncio.CancelledError()
    raise RequestAbortedException(signal.reason)
