# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import asyncio

import pytest
from aws_signed_fetch.abort import AbortSignal, effective_signal, run_abortable
from aws_signed_fetch.exceptions import RequestAbortedException


def test_abort_sets_reason_once() -> None:
    signal = AbortSignal()
    assert not signal.aborted
    assert signal.reason is None

    first, second = ValueError("first"), ValueError("second")
    signal.abort(first)
    signal.abort(second)
    assert signal.aborted
    assert signal.reason is first


def test_listeners_fire_once() -> None:
    signal = AbortSignal()
    calls: list[AbortSignal] = []
    removed: list[AbortSignal] = []
    signal.add_listener(calls.append)
    remove = signal.add_listener(removed.append)
    remove()

    signal.abort()
    signal.abort()
    assert calls == [signal]
    assert removed == []


def test_raise_if_aborted() -> None:
    signal = AbortSignal()
    signal.raise_if_aborted()

    reason = RuntimeError("stop")
    signal.abort(reason)
    with pytest.raises(RequestAbortedException) as exc_info:
        signal.raise_if_aborted()
    assert exc_info.value.reason is reason


async def test_timeout_signal_fires() -> None:
    signal = AbortSignal.timeout(0.01)
    await asyncio.wait_for(signal.wait(), timeout=1)
    assert signal.aborted
    assert isinstance(signal.reason, TimeoutError)


async def test_closed_timeout_signal_never_fires() -> None:
    signal = AbortSignal.timeout(0.01)
    signal.close()
    await asyncio.sleep(0.05)
    assert not signal.aborted


def test_any_takes_first_reason() -> None:
    first, second = AbortSignal(), AbortSignal()
    composite = AbortSignal.any([first, second])
    assert not composite.aborted

    reason = ValueError("second fired")
    second.abort(reason)
    first.abort(ValueError("too late"))
    assert composite.aborted
    assert composite.reason is reason


def test_any_with_aborted_source() -> None:
    source = AbortSignal()
    reason = ValueError("already")
    source.abort(reason)
    composite = AbortSignal.any([AbortSignal(), source])
    assert composite.aborted
    assert composite.reason is reason


def test_closed_composite_stops_following_sources() -> None:
    source = AbortSignal()
    composite = AbortSignal.any([source])
    composite.close()
    source.abort()
    assert not composite.aborted


async def test_effective_signal_without_timeout_is_the_caller_signal() -> None:
    signal = AbortSignal()
    with effective_signal(signal, None) as effective:
        assert effective is signal
    with effective_signal(None, None) as effective:
        assert effective is None


async def test_effective_signal_applies_timeout() -> None:
    with effective_signal(None, 0.01) as effective:
        assert effective is not None
        await asyncio.wait_for(effective.wait(), timeout=1)
        assert isinstance(effective.reason, TimeoutError)


async def test_effective_signal_zero_timeout_arms_no_timer() -> None:
    signal = AbortSignal()
    with effective_signal(signal, 0) as effective:
        assert effective is signal


def test_effective_signal_rejects_negative_timeout() -> None:
    with pytest.raises(ValueError):
        with effective_signal(None, -1):
            pass


async def test_effective_signal_follows_caller_signal() -> None:
    caller = AbortSignal()
    with effective_signal(caller, 10) as effective:
        assert effective is not None
        reason = ValueError("caller")
        caller.abort(reason)
        assert effective.aborted
        assert effective.reason is reason


async def test_effective_signal_releases_timer_on_exit() -> None:
    with effective_signal(None, 0.01) as effective:
        assert effective is not None
    await asyncio.sleep(0.05)
    assert not effective.aborted


async def test_run_abortable_without_signal() -> None:
    async def work() -> str:
        return "done"

    assert await run_abortable(work(), None) == "done"


async def test_run_abortable_returns_result() -> None:
    async def work() -> str:
        await asyncio.sleep(0)
        return "done"

    assert await run_abortable(work(), AbortSignal()) == "done"


async def test_run_abortable_propagates_errors() -> None:
    async def work() -> None:
        raise ConnectionError("reset")

    with pytest.raises(ConnectionError):
        await run_abortable(work(), AbortSignal())


async def test_run_abortable_cancels_pending_work() -> None:
    signal = AbortSignal()
    cancelled = asyncio.Event()

    async def work() -> None:
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    asyncio.get_running_loop().call_later(0.01, signal.abort, ValueError("stop"))
    with pytest.raises(RequestAbortedException) as exc_info:
        await run_abortable(work(), signal)
    assert cancelled.is_set()
    assert isinstance(exc_info.value.reason, ValueError)


async def test_run_abortable_with_aborted_signal_never_starts() -> None:
    signal = AbortSignal()
    signal.abort()
    started = False

    async def work() -> None:
        nonlocal started
        started = True

    with pytest.raises(RequestAbortedException):
        await run_abortable(work(), signal)
    assert not started
