# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import random
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .exceptions import InvalidRetryConfigurationException, RetryError

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset((429, 499))
"""Statuses below 500 that still indicate a transient condition."""


def is_retryable_status(status: int) -> bool:
    """Whether a response status calls for another attempt."""
    return status >= 500 or status in RETRYABLE_STATUS_CODES


class ExponentialBackoffJitterType(Enum):
    """Jitter mode for exponential backoff.

    For use with :py:class:`ExponentialRetryBackoffStrategy`.
    """

    FULL = 1
    """Binary exponential backoff delay with full jitter:

    .. code-block:: python

        random_between(0, initial_backoff * 2 ** (retry_attempt - 1))
    """

    NONE = 2
    """Binary exponential backoff delay without jitter:

    .. code-block:: python

        initial_backoff * 2 ** (retry_attempt - 1)
    """


class ExponentialRetryBackoffStrategy:
    def __init__(
        self,
        *,
        initial_backoff: float = 0.05,
        max_backoff: float | None = None,
        jitter_type: ExponentialBackoffJitterType = ExponentialBackoffJitterType.FULL,
        random: Callable[[], float] = random.random,
    ):
        """Exponential backoff with optional jitter.

        .. seealso:: https://aws.amazon.com/blogs/architecture/exponential-backoff-and-jitter/

        :param initial_backoff: Upper bound, in seconds, of the delay before the first
            retry. Each further retry doubles it.

        :param max_backoff: Optional cap, in seconds, applied before jitter.

        :param jitter_type: Determines the formula used to apply jitter to the backoff
            delay.

        :param random: A callable that returns random numbers between ``0`` and ``1``.
        """
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._jitter_type = jitter_type
        self._random = random

    def compute_next_backoff_delay(self, retry_attempt: int) -> float:
        """Calculate timespan in seconds to delay before next retry.

        :param retry_attempt: The index of the retry attempt that is about to be made
            after the delay. The initial attempt, before any retries, is index ``0``,
            and will return a delay of ``0``. The first retry attempt after a failed
            initial attempt is index ``1``, and so on.
        """
        if retry_attempt == 0:
            return 0

        delay = self._initial_backoff * (2.0 ** (retry_attempt - 1))
        if self._max_backoff is not None:
            delay = min(delay, self._max_backoff)

        match self._jitter_type:
            case ExponentialBackoffJitterType.NONE:
                return delay
            case ExponentialBackoffJitterType.FULL:
                return self._random() * delay


@dataclass(kw_only=True)
class SimpleRetryToken:
    """Basic retry token that stores only the attempt count and backoff delay.

    Retry tokens should always be obtained from a :py:class:`SimpleRetryStrategy`.
    """

    retry_count: int
    """Retry count is the total number of attempts minus the initial attempt."""

    retry_delay: float
    """Delay in seconds to wait before the retry attempt."""

    @property
    def attempt(self) -> int:
        """The zero based index of the attempt this token grants."""
        return self.retry_count


class SimpleRetryStrategy:
    def __init__(
        self,
        *,
        backoff_strategy: ExponentialRetryBackoffStrategy | None = None,
        max_retries: int = 3,
    ):
        """Retry strategy allowing a fixed number of retries after the first attempt.

        :param backoff_strategy: The backoff strategy used by returned tokens to compute
            the retry delay. Defaults to :py:class:`ExponentialRetryBackoffStrategy`.

        :param max_retries: Number of attempts allowed after the initial attempt.

        :raises InvalidRetryConfigurationException: If ``max_retries`` is negative.
        """
        if max_retries < 0:
            raise InvalidRetryConfigurationException(
                f"retries must not be negative, got {max_retries}."
            )
        self.backoff_strategy = backoff_strategy or ExponentialRetryBackoffStrategy()
        self.max_retries = max_retries

    def acquire_initial_retry_token(self) -> SimpleRetryToken:
        """Called before any retries (for the first attempt at the operation)."""
        retry_delay = self.backoff_strategy.compute_next_backoff_delay(0)
        return SimpleRetryToken(retry_count=0, retry_delay=retry_delay)

    def has_retries_left(self, token: SimpleRetryToken) -> bool:
        return token.retry_count < self.max_retries

    def refresh_retry_token_for_retry(
        self, *, token_to_renew: SimpleRetryToken
    ) -> SimpleRetryToken:
        """Replace an existing retry token from a failed attempt with a new token.

        :param token_to_renew: The token used for the previous failed attempt.

        :raises RetryError: If no further retry attempts are allowed.
        """
        if not self.has_retries_left(token_to_renew):
            raise RetryError(
                f"Reached maximum number of allowed retries: {self.max_retries}"
            )
        retry_count = token_to_renew.retry_count + 1
        retry_delay = self.backoff_strategy.compute_next_backoff_delay(retry_count)
        return SimpleRetryToken(retry_count=retry_count, retry_delay=retry_delay)
