# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Concrete request, response, and header containers used by the signer and client."""

from __future__ import annotations

from collections import Counter, OrderedDict
from collections.abc import Iterable, Iterator, Mapping
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, TypedDict
from urllib.parse import quote, urlsplit, urlunsplit

from .exceptions import MissingExpectedParameterException
from .interfaces import http as interfaces_http
from .interfaces.http import FieldPosition

DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}

# Everything printable in ASCII except the WHATWG path percent-encode set.
_PATH_SAFE_CHARS = "!$%&'()*+,-./:;=@[]^_|~"
# Everything printable in ASCII except the WHATWG special-query percent-encode set.
_QUERY_SAFE_CHARS = "!$%&()*+,-./:;=?@[\\]^_`{|}~"


class Field(interfaces_http.Field):
    """A name-value pair representing a single field in an HTTP Request or Response.

    The kind will dictate metadata placement within an HTTP message.
    """

    def __init__(
        self,
        *,
        name: str,
        values: Iterable[str] | None = None,
        kind: FieldPosition = FieldPosition.HEADER,
    ):
        self.name = name
        self.values: list[str] = list(values) if values is not None else []
        self.kind = kind

    def add(self, value: str) -> None:
        """Append a value to a field."""
        self.values.append(value)

    def set(self, values: list[str]) -> None:
        """Overwrite existing field values."""
        self.values = values

    def as_string(self, delimiter: str = ",") -> str:
        """Get delimited string of all values.

        If the ``Field`` has zero values, the empty string is returned. If the ``Field``
        has exactly one value, the value is returned unmodified. Multiple values that
        contain commas or double quotes are quoted and escaped before joining.
        """
        value_count = len(self.values)
        if value_count == 0:
            return ""
        if value_count == 1:
            return self.values[0]
        return delimiter.join(quote_and_escape_field_value(val) for val in self.values)

    def as_tuples(self) -> list[tuple[str, str]]:
        """Get list of ``name``, ``value`` tuples where each tuple represents one
        value."""
        return [(self.name, val) for val in self.values]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Field):
            return False
        return (
            self.name == other.name
            and self.kind is other.kind
            and self.values == other.values
        )

    def __repr__(self) -> str:
        return f"Field(name={self.name!r}, value={self.values!r}, kind={self.kind!r})"


class Fields(interfaces_http.Fields):
    def __init__(self, initial: Iterable[interfaces_http.Field] | None = None):
        """Collection of header and trailer entries mapped by lowercased name.

        :param initial: Initial list of ``Field`` objects. Normalized names must be
            unique.
        """
        init_fields = list(initial) if initial is not None else []
        init_field_names = [fld.name.lower() for fld in init_fields]
        repeated = [
            name for name, num in Counter(init_field_names).items() if num > 1
        ]
        if repeated:
            raise ValueError(
                "Field names of the initial list of fields must be unique. The "
                "following normalized field names appear more than once: "
                f"{', '.join(repeated)}."
            )
        self.entries: OrderedDict[str, interfaces_http.Field] = OrderedDict(
            zip(init_field_names, init_fields)
        )

    def set_field(self, field: interfaces_http.Field) -> None:
        """Alias for __setitem__ to utilize the field.name for the entry key."""
        self.__setitem__(field.name, field)

    def __setitem__(self, name: str, field: interfaces_http.Field) -> None:
        """Set or override entry for a Field name."""
        if name.lower() != field.name.lower():
            raise ValueError(
                f"Supplied key {name} does not match Field.name "
                f"provided: {field.name.lower()}"
            )
        self.entries[name.lower()] = field

    def get(
        self, key: str, default: interfaces_http.Field | None = None
    ) -> interfaces_http.Field | None:
        return self[key] if key in self else default

    def get_value(self, key: str) -> str | None:
        """Get the single line value of a field, or ``None`` if it isn't present."""
        found = self.get(key)
        return None if found is None else found.as_string()

    def __getitem__(self, name: str) -> interfaces_http.Field:
        return self.entries[name.lower()]

    def __delitem__(self, name: str) -> None:
        del self.entries[name.lower()]

    def discard(self, name: str) -> None:
        """Remove an entry if present."""
        self.entries.pop(name.lower(), None)

    def get_by_type(self, kind: FieldPosition) -> list[interfaces_http.Field]:
        return [entry for entry in self.entries.values() if entry.kind is kind]

    def __eq__(self, other: object) -> bool:
        """Entries must match in values and order."""
        if not isinstance(other, Fields):
            return False
        return self.entries == other.entries

    def __iter__(self) -> Iterator[interfaces_http.Field]:
        yield from self.entries.values()

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        return f"Fields({self.entries})"

    def __contains__(self, key: str) -> bool:
        return key.lower() in self.entries


def tuples_to_fields(
    tuples: Iterable[tuple[str, str]], *, kind: FieldPosition | None = None
) -> Fields:
    """Convert ``name``, ``value`` tuples to ``Fields`` object. Each tuple represents
    one Field value.

    :param kind: The Field kind to define for all tuples.
    """
    fields = Fields()
    for name, value in tuples:
        try:
            fields[name].add(value)
        except KeyError:
            fields[name] = Field(
                name=name, values=[value], kind=kind or FieldPosition.HEADER
            )
    return fields


@dataclass(kw_only=True, frozen=True)
class URI(interfaces_http.URI):
    """Universal Resource Identifier, target location for a :py:class:`AWSRequest`."""

    scheme: str = "https"
    username: str | None = None
    password: str | None = None
    host: str
    port: int | None = None
    path: str | None = None
    query: str | None = None
    fragment: str | None = None

    @classmethod
    def from_url(cls, url: str) -> URI:
        """Parse an absolute URL, normalizing it the way a browser URL parser would.

        Dot segments are resolved and a port matching the scheme's default is
        dropped. Path and query characters outside their safe sets are
        percent-encoded while existing escapes are kept. For ``http`` and ``https``
        a backslash before the query is read as ``/``.

        :raises MissingExpectedParameterException: If the URL has no host.
        """
        if urlsplit(url).scheme.lower() in DEFAULT_PORTS:
            end = min(
                (i for i in (url.find("?"), url.find("#")) if i >= 0),
                default=len(url),
            )
            url = url[:end].replace("\\", "/") + url[end:]
        parts = urlsplit(url)
        if not parts.hostname:
            raise MissingExpectedParameterException(
                f"Expected an absolute URL with a host, got {url!r}."
            )
        scheme = parts.scheme.lower()
        port = parts.port
        if port is not None and DEFAULT_PORTS.get(scheme) == port:
            port = None
        path = parts.path or "/"
        path = quote(
            remove_dot_segments(path, remove_consecutive_slashes=False),
            safe=_PATH_SAFE_CHARS,
        )
        return cls(
            scheme=scheme,
            username=parts.username,
            password=parts.password,
            host=parts.hostname,
            port=port,
            path=path,
            query=quote(parts.query, safe=_QUERY_SAFE_CHARS) or None,
            fragment=parts.fragment or None,
        )

    @property
    def netloc(self) -> str:
        """Construct netloc string in format ``{username}:{password}@{host}:{port}``

        ``username``, ``password``, and ``port`` are only included if set. ``password``
        is ignored, unless ``username`` is also set.
        """
        if self.username is not None:
            password = "" if self.password is None else f":{self.password}"
            userinfo = f"{self.username}{password}@"
        else:
            userinfo = ""

        if self.port is not None:
            port = f":{self.port}"
        else:
            port = ""

        return f"{userinfo}{self._bracketed_host}{port}"

    @property
    def host_header(self) -> str:
        """The value of the ``Host`` header, without userinfo or a default port."""
        if self.port is None or DEFAULT_PORTS.get(self.scheme) == self.port:
            return self._bracketed_host
        return f"{self._bracketed_host}:{self.port}"

    @property
    def _bracketed_host(self) -> str:
        return f"[{self.host}]" if ":" in self.host else self.host

    def build(self) -> str:
        """Construct URI string representation.

        Returns a string of the form
        ``{scheme}://{username}:{password}@{host}:{port}{path}?{query}#{fragment}``
        """
        return urlunsplit(
            (self.scheme, self.netloc, self.path or "", self.query, self.fragment)
        )

    def to_dict(self) -> URIParameters:
        return {
            "scheme": self.scheme,
            "host": self.host,
            "port": self.port,
            "path": self.path,
            "query": self.query,
            "username": self.username,
            "password": self.password,
            "fragment": self.fragment,
        }


class URIParameters(TypedDict):
    """TypedDict representing the parameters for the URI class.

    These need to be kept in sync for the `to_dict` method.
    """

    scheme: str
    username: str | None
    password: str | None
    host: str
    port: int | None
    path: str | None
    query: str | None
    fragment: str | None


class AWSRequest(interfaces_http.Request):
    def __init__(
        self,
        *,
        destination: URI,
        method: str,
        fields: Fields | None = None,
        body: Any = None,
    ):
        self.destination = destination
        self.method = method
        self.fields = fields if fields is not None else Fields()
        self.body = body

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        method: str | None = None,
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        body: Any = None,
    ) -> AWSRequest:
        """Build a request from a URL string.

        :param method: HTTP method. Defaults to ``POST`` when a body is given and
            ``GET`` otherwise.
        :param headers: Header names and values, as a mapping or as tuples.
        """
        if isinstance(headers, Mapping):
            headers = headers.items()
        return cls(
            destination=URI.from_url(url),
            method=method or ("POST" if body else "GET"),
            fields=tuples_to_fields(headers or ()),
            body=body,
        )

    def __deepcopy__(self, memo: dict[int, Any] | None = None) -> AWSRequest:
        if memo is None:
            memo = {}

        if id(self) in memo:
            return memo[id(self)]

        # the destination is immutable and the body is never modified
        new_instance = self.__class__(
            destination=self.destination,
            body=self.body,
            method=self.method,
            fields=deepcopy(self.fields, memo),
        )
        memo[id(self)] = new_instance
        return new_instance

    def __repr__(self) -> str:
        return (
            f"AWSRequest(method={self.method!r}, "
            f"destination={self.destination.build()!r}, fields={self.fields!r})"
        )


@dataclass(kw_only=True)
class AWSResponse(interfaces_http.Response):
    """A fully read HTTP response."""

    status: int
    fields: Fields = field(default_factory=Fields)
    body: bytes = b""
    reason: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the status code is in the 2xx range."""
        return 200 <= self.status < 300


def quote_and_escape_field_value(value: str) -> str:
    """Escapes and quotes a single :class:`Field` value if necessary.

    See :func:`Field.as_string` for quoting and escaping logic.
    """
    chars_to_quote = (",", '"')
    if any(char in chars_to_quote for char in value):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    else:
        return value


def remove_dot_segments(path: str, remove_consecutive_slashes: bool = True) -> str:
    """Removes dot segments from a path per :rfc:`3986#section-5.2.4`.

    Optionally removes consecutive slashes, true by default.
    :param path: The path to modify.
    :param remove_consecutive_slashes: Whether to remove consecutive slashes.
    :returns: The path with dot segments removed.
    """
    output: list[str] = []
    for segment in path.split("/"):
        if segment == ".":
            continue
        elif segment != "..":
            output.append(segment)
        elif output:
            output.pop()
    if path.startswith("/") and (not output or output[0]):
        output.insert(0, "")
    if output and path.endswith(("/.", "/..")):
        output.append("")
    result = "/".join(output)
    if remove_consecutive_slashes:
        result = result.replace("//", "/")
    return result
