# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterator
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..abort import AbortSignal


class FieldPosition(Enum):
    """The type of a field.

    Defines its placement in a request or response.
    """

    HEADER = 0
    """Header field.

    In HTTP this is a header as defined in RFC 9110 Section 6.3.
    """

    TRAILER = 1
    """Trailer field.

    In HTTP this is a trailer as defined in RFC 9110 Section 6.5.
    """


class Field(Protocol):
    """A name-value pair representing a single field in a request or response.

    All field names are case insensitive and case-variance must be treated as
    equivalent. Names may be normalized but should be preserved for accuracy during
    transmission.
    """

    name: str
    values: list[str]
    kind: FieldPosition = FieldPosition.HEADER

    def add(self, value: str) -> None:
        """Append a value to a field."""
        ...

    def set(self, values: list[str]) -> None:
        """Overwrite existing field values."""
        ...

    def as_string(self, delimiter: str = ",") -> str:
        """Serialize the ``Field``'s values into a single line string."""
        ...

    def as_tuples(self) -> list[tuple[str, str]]:
        """Get list of ``name``, ``value`` tuples where each tuple represents one
        value."""
        ...


class Fields(Protocol):
    """Case insensitive mapping of request or response metadata, such as HTTP
    headers."""

    # Entries are keyed off the lowercased name of a provided Field
    entries: OrderedDict[str, Field]

    def set_field(self, field: Field) -> None:
        """Alias for __setitem__ to utilize the field.name for the entry key."""
        ...

    def __setitem__(self, name: str, field: Field) -> None: ...

    def __getitem__(self, name: str) -> Field: ...

    def __delitem__(self, name: str) -> None: ...

    def __iter__(self) -> Iterator[Field]: ...

    def __len__(self) -> int: ...

    def __contains__(self, key: str) -> bool: ...

    def get_value(self, key: str) -> str | None:
        """Get the single line value of a field, or ``None`` if it isn't present."""
        ...

    def get_by_type(self, kind: FieldPosition) -> list[Field]:
        """Helper function for retrieving specific types of fields.

        Used to grab all headers or all trailers.
        """
        ...


@runtime_checkable
class URI(Protocol):
    """Universal Resource Identifier, target location for a :py:class:`Request`."""

    scheme: str
    """For example ``http`` or ``https``."""

    username: str | None
    password: str | None

    host: str
    """The hostname, for example ``s3.eu-west-1.amazonaws.com``."""

    port: int | None
    """An explicit port number."""

    path: str | None
    """Path component of the URI, percent-encoded as it appears on the wire."""

    query: str | None
    """Query component of the URI as string."""

    fragment: str | None

    def build(self) -> str:
        """Construct URI string representation.

        Returns a string of the form
        ``{scheme}://{username}:{password}@{host}:{port}{path}?{query}#{fragment}``
        """
        ...

    @property
    def netloc(self) -> str:
        """Construct netloc string in format ``{username}:{password}@{host}:{port}``"""
        ...


class Request(Protocol):
    """Protocol-agnostic representation of a request."""

    destination: URI
    method: str
    fields: Fields
    body: Any


class Response(Protocol):
    """Protocol-agnostic representation of a fully read response."""

    status: int
    fields: Fields
    body: bytes


class HTTPClient(Protocol):
    """A client capable of performing a single HTTP exchange."""

    async def send(
        self, *, request: Request, signal: AbortSignal | None = None
    ) -> Response:
        """Send the request and return the fully read response.

        :param request: The signed request to transmit.
        :param signal: The effective cancellation signal for the call. Clients may
            use it to stop early; the caller cancels the call regardless.
        """
        ...
