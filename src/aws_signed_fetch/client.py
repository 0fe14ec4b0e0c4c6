# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from types import TracebackType
from typing import Self

from ._http import AWSRequest, AWSResponse
from .abort import AbortSignal, effective_signal, run_abortable
from .config import AWSClientConfig
from .exceptions import RequestAbortedException, ResponseNotOkayException
from .http import AIOHTTPClient
from .interfaces.http import HTTPClient
from .keys import SigningKeyCache
from .retries import (
    ExponentialRetryBackoffStrategy,
    SimpleRetryStrategy,
    SimpleRetryToken,
    is_retryable_status,
)
from .signers import SigV4Signer, SigV4SigningProperties

_LOGGER = logging.getLogger(__name__)


@dataclass(kw_only=True, frozen=True)
class AttemptRecord:
    """The outcome of a single attempt, reported to ``on_attempt`` hooks."""

    attempt: int
    """Zero based attempt index."""

    duration: float
    """Time spent on the exchange, in seconds."""

    response: AWSResponse | None = None
    """The response, when the server answered."""

    error: Exception | None = None
    """The error, when no response was received."""

    @property
    def succeeded(self) -> bool:
        """Whether an HTTP response was received, regardless of its status."""
        return self.error is None


type AttemptHook = Callable[[AttemptRecord], None]
type ResponseValidator = Callable[[AWSResponse], bool]


class AWSClient:
    """Signs requests with SigV4 and sends them with retries.

    One client owns one set of credentials and one signing key cache. Calls may run
    concurrently on the same event loop.
    """

    def __init__(
        self,
        config: AWSClientConfig,
        *,
        http_client: HTTPClient | None = None,
        cache: SigningKeyCache | None = None,
    ) -> None:
        """
        :param config: Credentials, signing defaults and retry settings.
        :param http_client: Transport performing a single exchange. Defaults to an
            :py:class:`AIOHTTPClient` owned and closed by this client.
        :param cache: Storage for derived signing keys. Defaults to an unbounded
            in-memory cache.
        """
        self._config = config
        self._identity = config.identity
        self._signer = SigV4Signer(cache=cache)
        self._owns_http_client = http_client is None
        self._http_client: HTTPClient = http_client or AIOHTTPClient()

    @property
    def config(self) -> AWSClientConfig:
        return self._config

    @property
    def signer(self) -> SigV4Signer:
        return self._signer

    def sign(
        self,
        request: AWSRequest,
        *,
        properties: SigV4SigningProperties | None = None,
    ) -> AWSRequest:
        """Sign a copy of ``request`` with the client's credentials.

        :param properties: Per-call signing options, taking precedence over the
            client's ``service`` and ``region``.
        """
        return self._signer.sign(
            request=request,
            identity=self._identity,
            properties=self._merge_properties(properties),
        )

    async def fetch(
        self,
        request: AWSRequest,
        *,
        properties: SigV4SigningProperties | None = None,
        timeout: float | None = None,
        signal: AbortSignal | None = None,
        retries: int | None = None,
        on_attempt: AttemptHook | None = None,
        is_response_ok: ResponseValidator | None = None,
    ) -> AWSResponse:
        """Sign and send ``request``, retrying transient failures.

        Network errors and responses with status ``>= 500``, ``429`` or ``499`` are
        retried with jittered exponential backoff. Every attempt is signed again. Any
        other response is returned as is, including 4xx responses.

        :param properties: Per-call signing options.
        :param timeout: Maximum duration of the whole call in seconds, retries and
            backoff included. ``None`` or ``0`` means no timeout.
        :param signal: Caller controlled cancellation. Once aborted no further
            attempt starts.
        :param retries: Overrides the configured number of retries.
        :param on_attempt: Invoked once per attempt with its outcome.
        :param is_response_ok: Extra validation of otherwise final responses. A
            rejected response is retried while retries remain.
        :raises InvalidRetryConfigurationException: If ``retries`` is negative.
        :raises ValueError: If ``timeout`` is negative.
        :raises RequestAbortedException: If the signal or the timeout fires.
        :raises ResponseNotOkayException: If ``is_response_ok`` rejects the final
            response.
        """
        retry_strategy = SimpleRetryStrategy(
            backoff_strategy=ExponentialRetryBackoffStrategy(
                initial_backoff=self._config.initial_backoff,
                max_backoff=self._config.max_backoff,
            ),
            max_retries=self._config.retries if retries is None else retries,
        )
        with effective_signal(signal, timeout) as call_signal:
            return await self._retry(
                request,
                retry_strategy=retry_strategy,
                properties=properties,
                signal=call_signal,
                on_attempt=on_attempt,
                is_response_ok=is_response_ok,
            )

    async def _retry(
        self,
        request: AWSRequest,
        *,
        retry_strategy: SimpleRetryStrategy,
        properties: SigV4SigningProperties | None,
        signal: AbortSignal | None,
        on_attempt: AttemptHook | None,
        is_response_ok: ResponseValidator | None,
    ) -> AWSResponse:
        retry_token = retry_strategy.acquire_initial_retry_token()

        while True:
            if retry_token.retry_delay:
                await run_abortable(asyncio.sleep(retry_token.retry_delay), signal)
            if signal is not None:
                signal.raise_if_aborted()

            is_last_attempt = not retry_strategy.has_retries_left(retry_token)
            # Signatures embed a timestamp, so every attempt is signed afresh.
            signed_request = self.sign(request, properties=properties)

            attempt_start = time.perf_counter()
            try:
                response = await run_abortable(
                    self._http_client.send(request=signed_request, signal=signal),
                    signal,
                )
            except RequestAbortedException as error:
                self._record(on_attempt, retry_token, attempt_start, error=error)
                raise
            except Exception as error:
                self._record(on_attempt, retry_token, attempt_start, error=error)
                if is_last_attempt or (signal is not None and signal.aborted):
                    raise
                _LOGGER.warning(
                    "Attempt #%s failed with %r", retry_token.attempt + 1, error
                )
                retry_token = self._next_token(retry_strategy, retry_token)
                continue

            self._record(on_attempt, retry_token, attempt_start, response=response)

            if is_retryable_status(response.status) and not is_last_attempt:
                _LOGGER.debug(
                    "Received retryable status %s on attempt #%s.",
                    response.status,
                    retry_token.attempt + 1,
                )
                retry_token = self._next_token(retry_strategy, retry_token)
                continue

            if is_response_ok is not None and not is_response_ok(response):
                if is_last_attempt:
                    raise ResponseNotOkayException(response)
                _LOGGER.debug(
                    "Response with status %s rejected on attempt #%s.",
                    response.status,
                    retry_token.attempt + 1,
                )
                retry_token = self._next_token(retry_strategy, retry_token)
                continue

            return response

    def _next_token(
        self, retry_strategy: SimpleRetryStrategy, retry_token: SimpleRetryToken
    ) -> SimpleRetryToken:
        retry_token = retry_strategy.refresh_retry_token_for_retry(
            token_to_renew=retry_token
        )
        _LOGGER.debug(
            "Retry needed. Attempting request #%s in %.4f seconds.",
            retry_token.attempt + 1,
            retry_token.retry_delay,
        )
        return retry_token

    def _record(
        self,
        on_attempt: AttemptHook | None,
        retry_token: SimpleRetryToken,
        attempt_start: float,
        *,
        response: AWSResponse | None = None,
        error: Exception | None = None,
    ) -> None:
        if on_attempt is None:
            return
        on_attempt(
            AttemptRecord(
                attempt=retry_token.attempt,
                duration=time.perf_counter() - attempt_start,
                response=response,
                error=error,
            )
        )

    def _merge_properties(
        self, properties: SigV4SigningProperties | None
    ) -> SigV4SigningProperties:
        merged = SigV4SigningProperties()
        if self._config.service:
            merged["service"] = self._config.service
        if self._config.region:
            merged["region"] = self._config.region
        if properties:
            merged.update(properties)
        return merged

    async def close(self) -> None:
        """Close the HTTP client if this client created it."""
        if self._owns_http_client and isinstance(self._http_client, AIOHTTPClient):
            await self._http_client.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.close()
