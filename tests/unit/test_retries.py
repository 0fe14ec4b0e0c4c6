# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest
from aws_signed_fetch.exceptions import InvalidRetryConfigurationException, RetryError
from aws_signed_fetch.retries import ExponentialBackoffJitterType as EBJT
from aws_signed_fetch.retries import (
    ExponentialRetryBackoffStrategy,
    SimpleRetryStrategy,
    is_retryable_status,
)


@pytest.mark.parametrize(
    "jitter_type, initial_backoff, max_backoff, expected_delays",
    [
        # no jitter
        (EBJT.NONE, 2, None, [0, 2.0, 4.0, 8.0, 16.0, 32.0]),
        (EBJT.NONE, 2.0, 20.0, [0, 2.0, 4.0, 8.0, 16.0, 20.0, 20.0]),
        (EBJT.NONE, 0.05, None, [0, 0.05, 0.1, 0.2, 0.4]),
        (EBJT.NONE, 4.0, 2.0, [0, 2.0, 2.0, 2.0]),
        # full jitter
        (EBJT.FULL, 2.0, 20.0, [0, 1.0, 2.0, 4.0, 8.0, 10.0, 10.0]),
        (EBJT.FULL, 5.0, 10.0, [0, 2.5, 5.0, 5.0, 5.0]),
        # edge cases with zeros
        (EBJT.NONE, 5.0, 0.0, [0, 0, 0, 0]),
        (EBJT.NONE, 0.0, 5.0, [0, 0, 0, 0]),
        (EBJT.FULL, 0.0, 0.0, [0, 0, 0, 0]),
    ],
)
def test_exponential_backoff_strategy(
    jitter_type: EBJT,
    initial_backoff: float,
    max_backoff: float | None,
    expected_delays: list[float],
) -> None:
    bos = ExponentialRetryBackoffStrategy(
        initial_backoff=initial_backoff,
        max_backoff=max_backoff,
        jitter_type=jitter_type,
        random=lambda: 0.5,  # every generated "random" value equals 0.5
    )

    for delay_index, delay_expected in enumerate(expected_delays):
        delay_actual = bos.compute_next_backoff_delay(retry_attempt=delay_index)
        assert delay_actual == pytest.approx(delay_expected)  # type: ignore


def test_full_jitter_stays_within_bounds() -> None:
    bos = ExponentialRetryBackoffStrategy(initial_backoff=0.05)
    for retry_attempt in range(1, 8):
        ceiling = 0.05 * 2 ** (retry_attempt - 1)
        for _ in range(20):
            assert 0 <= bos.compute_next_backoff_delay(retry_attempt) <= ceiling


@pytest.mark.parametrize("max_retries", [0, 1, 2, 3])
def test_simple_retry_strategy(max_retries: int) -> None:
    strategy = SimpleRetryStrategy(
        backoff_strategy=ExponentialRetryBackoffStrategy(
            initial_backoff=1, jitter_type=EBJT.NONE
        ),
        max_retries=max_retries,
    )
    token = strategy.acquire_initial_retry_token()
    assert token.attempt == 0
    assert token.retry_delay == 0

    for retry_count in range(1, max_retries + 1):
        assert strategy.has_retries_left(token)
        token = strategy.refresh_retry_token_for_retry(token_to_renew=token)
        assert token.retry_count == retry_count
        assert token.retry_delay == 2 ** (retry_count - 1)

    assert not strategy.has_retries_left(token)
    with pytest.raises(RetryError):
        strategy.refresh_retry_token_for_retry(token_to_renew=token)


def test_simple_retry_strategy_rejects_negative_retries() -> None:
    with pytest.raises(InvalidRetryConfigurationException):
        SimpleRetryStrategy(max_retries=-1)


@pytest.mark.parametrize(
    "status, expected",
    [
        (200, False),
        (204, False),
        (301, False),
        (400, False),
        (403, False),
        (404, False),
        (429, True),
        (499, True),
        (500, True),
        (502, True),
        (503, True),
        (599, True),
    ],
)
def test_is_retryable_status(status: int, expected: bool) -> None:
    assert is_retryable_status(status) is expected
