# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import logging
from dataclasses import dataclass
from itertools import chain
from typing import Any

import aiohttp
from yarl import URL

from ._http import AWSResponse, Field, Fields
from .abort import AbortSignal
from .interfaces.http import FieldPosition, HTTPClient, Request

_LOGGER = logging.getLogger(__name__)


@dataclass(kw_only=True)
class AIOHTTPClientConfig:
    """Configuration that applies to every request made with an
    :py:class:`AIOHTTPClient`."""

    total_timeout: float | None = None
    """Upper bound in seconds for a single exchange, enforced by aiohttp."""


class AIOHTTPClient(HTTPClient):
    """Implementation of :py:class:`.interfaces.http.HTTPClient` using aiohttp."""

    def __init__(
        self,
        *,
        client_config: AIOHTTPClientConfig | None = None,
        _session: aiohttp.ClientSession | None = None,
    ) -> None:
        """
        :param client_config: Configuration that applies to all requests made with this
            client.
        """
        self._config = client_config or AIOHTTPClientConfig()
        self._session = _session
        self._owns_session = _session is None

    async def send(
        self, *, request: Request, signal: AbortSignal | None = None
    ) -> AWSResponse:
        """Send HTTP request using aiohttp client.

        :param request: The signed request including destination URI, fields and body.
        :param signal: Unused, the caller cancels the call when the signal fires.
        """
        headers_list = list(
            chain.from_iterable(
                fld.as_tuples()
                for fld in request.fields.get_by_type(FieldPosition.HEADER)
            )
        )
        # The signed query must reach the wire byte for byte.
        url = URL(request.destination.build(), encoded=True)
        _LOGGER.debug("Sending %s request to %s", request.method, url.host)

        async with self._get_session().request(
            method=request.method,
            url=url,
            headers=headers_list,
            data=_as_payload(request.body),
            timeout=aiohttp.ClientTimeout(total=self._config.total_timeout),
        ) as resp:
            return await self._marshal_response(resp)

    async def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _marshal_response(
        self, aiohttp_resp: aiohttp.ClientResponse
    ) -> AWSResponse:
        """Convert a ``aiohttp.ClientResponse`` to an :py:class:`AWSResponse`."""
        headers = Fields()
        for header_name, header_val in aiohttp_resp.headers.items():
            try:
                headers[header_name].add(header_val)
            except KeyError:
                headers[header_name] = Field(
                    name=header_name,
                    values=[header_val],
                    kind=FieldPosition.HEADER,
                )

        return AWSResponse(
            status=aiohttp_resp.status,
            fields=headers,
            body=await aiohttp_resp.read(),
            reason=aiohttp_resp.reason,
        )


def _as_payload(body: Any) -> Any:
    match body:
        case None:
            return None
        case str():
            return body.encode("utf-8")
        case bytes() | bytearray() | memoryview():
            return bytes(body)
        case _:
            # Bodies signed with an explicit X-Amz-Content-Sha256 are passed through.
            return body
