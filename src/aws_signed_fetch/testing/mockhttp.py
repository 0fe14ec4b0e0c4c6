# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import asyncio
from collections import deque
from copy import deepcopy
from dataclasses import dataclass
from typing import Any

from .._http import AWSResponse, tuples_to_fields
from ..abort import AbortSignal
from ..interfaces.http import HTTPClient, Request


@dataclass(kw_only=True)
class _QueuedOutcome:
    status: int = 200
    headers: list[tuple[str, str]] | None = None
    body: bytes = b""
    error: BaseException | None = None
    delay: float = 0


class MockHTTPClient(HTTPClient):
    """Implementation of :py:class:`.interfaces.http.HTTPClient` solely for testing
    purposes.

    Simulates HTTP request/response behavior. Outcomes are queued in FIFO order and
    requests are captured for inspection.
    """

    def __init__(self) -> None:
        self._outcome_queue: deque[_QueuedOutcome] = deque()
        self._captured_requests: list[Request] = []
        self._captured_signals: list[AbortSignal | None] = []

    def add_response(
        self,
        status: int = 200,
        headers: list[tuple[str, str]] | None = None,
        body: bytes = b"",
        *,
        delay: float = 0,
    ) -> None:
        """Queue a response for the next request.

        :param status: HTTP status code.
        :param headers: HTTP response headers as list of (name, value) tuples.
        :param body: Response body as bytes.
        :param delay: Seconds to wait before answering.
        """
        self._outcome_queue.append(
            _QueuedOutcome(status=status, headers=headers, body=body, delay=delay)
        )

    def add_error(self, error: BaseException, *, delay: float = 0) -> None:
        """Queue an exception raised by the next request, e.g. a connection error."""
        self._outcome_queue.append(_QueuedOutcome(error=error, delay=delay))

    async def send(
        self, *, request: Request, signal: AbortSignal | None = None
    ) -> AWSResponse:
        """Return or raise the next queued outcome.

        :param request: The request including destination URI, fields, payload.
        :param signal: Recorded for inspection.
        :raises MockHTTPClientError: If nothing is queued.
        """
        self._captured_requests.append(deepcopy(request))
        self._captured_signals.append(signal)

        if not self._outcome_queue:
            raise MockHTTPClientError(
                "No responses queued in MockHTTPClient. Use add_response() to queue "
                "responses."
            )
        outcome = self._outcome_queue.popleft()
        if outcome.delay:
            await asyncio.sleep(outcome.delay)
        if outcome.error is not None:
            raise outcome.error
        return AWSResponse(
            status=outcome.status,
            fields=tuples_to_fields(outcome.headers or []),
            body=outcome.body,
        )

    @property
    def call_count(self) -> int:
        """The number of requests made to this client."""
        return len(self._captured_requests)

    @property
    def captured_requests(self) -> list[Request]:
        """The list of all requests captured by this client."""
        return self._captured_requests.copy()

    @property
    def captured_signals(self) -> list[AbortSignal | None]:
        return self._captured_signals.copy()

    def __deepcopy__(self, memo: Any) -> "MockHTTPClient":
        return self


class MockHTTPClientError(Exception):
    """Exception raised by MockHTTPClient for test setup issues."""
