# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Pure functions building the canonical forms used by Signature Version 4.

Every function here is deterministic and free of I/O. The rules reproduce the
encoding performed by ``encodeURIComponent`` based signers byte for byte so that
signatures are accepted by AWS as well as S3 compatible object stores.
"""

import re
from collections.abc import Iterable
from datetime import datetime
from hashlib import sha256
from typing import Any
from urllib.parse import parse_qsl, quote

from .exceptions import UnsupportedBodyException
from .interfaces.http import Fields

SIGV4_ALGORITHM: str = "AWS4-HMAC-SHA256"
SIGV4_TIMESTAMP_FORMAT: str = "%Y%m%dT%H%M%SZ"
UNSIGNED_PAYLOAD: str = "UNSIGNED-PAYLOAD"
EMPTY_SHA256_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

# https://github.com/aws/aws-sdk-js/blob/cc29728c1c4178969ebabe3bbe6b6f3159436394/lib/signers/v4.js#L190-L198
UNSIGNABLE_HEADERS: frozenset[str] = frozenset(
    (
        "authorization",
        "content-type",
        "content-length",
        "user-agent",
        "presigned-expires",
        "expect",
        "x-amzn-trace-id",
        "range",
        "connection",
    )
)

_RFC3986_RESERVED = re.compile(r"[!'()*]")
_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_ESCAPE_RUNS = re.compile(r"(?:%[0-9A-Fa-f]{2})+")
_SLASH_RUNS = re.compile(r"/+")


def format_signing_date(date: datetime) -> str:
    """Format a datetime as ``YYYYMMDDTHHMMSSZ``."""
    return date.strftime(SIGV4_TIMESTAMP_FORMAT)


def encode_rfc3986(value: str) -> str:
    """Percent-encode the characters ``encodeURIComponent`` leaves alone but RFC 3986
    reserves: ``! ' ( ) *``."""
    return _RFC3986_RESERVED.sub(lambda m: f"%{ord(m.group()):X}", value)


def uri_encode(value: str) -> str:
    """Strict percent-encoding leaving only ``A-Z a-z 0-9 - _ . ~`` unescaped."""
    return encode_rfc3986(quote(value, safe=""))


def decode_uri_component(value: str) -> str:
    """Percent-decode ``value`` as UTF-8.

    :raises ValueError: If an escape is malformed or the bytes aren't valid UTF-8.
    """
    if _MALFORMED_ESCAPE.search(value):
        raise ValueError(f"Malformed percent-encoding in {value!r}")
    return _ESCAPE_RUNS.sub(
        lambda m: bytes.fromhex(m.group().replace("%", "")).decode("utf-8"), value
    )


def canonical_path(
    path: str | None, *, service: str, single_encode: bool = False
) -> str:
    """Build the canonical URI.

    S3 paths are decoded once (``+`` is read as a space) and re-encoded, so the
    object key is encoded exactly once. Other services collapse repeated slashes and
    encode the already encoded path a second time. With ``single_encode`` only the
    RFC 3986 reserved characters are escaped.
    """
    path = path or "/"
    if service == "s3":
        try:
            encoded = decode_uri_component(path.replace("+", " "))
        except ValueError:
            encoded = path
    else:
        encoded = _SLASH_RUNS.sub("/", path)
    if not single_encode:
        encoded = quote(encoded, safe="/")
    return encode_rfc3986(encoded)


def parse_query(query: str | None) -> list[tuple[str, str]]:
    """Decode a raw query string into ordered ``(key, value)`` pairs."""
    if not query:
        return []
    return parse_qsl(query, keep_blank_values=True)


def canonical_query(params: Iterable[tuple[str, str]], *, service: str) -> str:
    """Build the canonical query string from decoded parameters.

    Empty keys are dropped and S3 only sees the first value of a repeated key.
    Pairs are sorted by encoded key, then encoded value.
    """
    seen_keys: set[str] = set()
    encoded: list[tuple[str, str]] = []
    for key, value in params:
        if not key:
            continue
        if service == "s3":
            if key in seen_keys:
                continue
            seen_keys.add(key)
        encoded.append((uri_encode(key), uri_encode(value)))
    return "&".join(f"{key}={value}" for key, value in sorted(encoded))


def signable_header_names(fields: Fields, *, all_headers: bool = False) -> list[str]:
    """Select and sort the lowercase names of the headers to sign.

    ``host`` is always signed. Other request headers are only signed when
    ``all_headers`` is set, which also lifts the :py:data:`UNSIGNABLE_HEADERS`
    exclusion.
    """
    names = {"host"}
    if all_headers:
        names.update(field.name.lower() for field in fields)
    return sorted(
        name for name in names if all_headers or name not in UNSIGNABLE_HEADERS
    )


def canonical_headers(names: Iterable[str], fields: Fields, host: str) -> str:
    """Render ``name:value`` lines for the signed headers.

    The host value always comes from the destination. Whitespace runs inside values
    collapse to a single space and values are trimmed. Multiple values are joined
    with bare commas, without quoting.
    """
    lines: list[str] = []
    for name in names:
        if name == "host":
            values = [host]
        elif name in fields:
            values = fields[name].values
        else:
            values = []
        value = ",".join(" ".join(v.split()) for v in values)
        lines.append(f"{name}:{value}\n")
    return "".join(lines)


def payload_hash(
    body: Any,
    *,
    content_sha256: str | None = None,
    service: str = "",
    sign_query: bool = False,
) -> str:
    """Hex encoded SHA-256 of the body.

    An explicit ``X-Amz-Content-Sha256`` value wins, and S3 presigned URLs use
    :py:data:`UNSIGNED_PAYLOAD`.

    :raises UnsupportedBodyException: If the body isn't ``str``, a bytes-like buffer,
        or ``None``.
    """
    if content_sha256:
        return content_sha256
    if service == "s3" and sign_query:
        return UNSIGNED_PAYLOAD

    match body:
        case None:
            return EMPTY_SHA256_HASH
        case str():
            data = body.encode("utf-8")
        case bytes() | bytearray() | memoryview():
            data = bytes(body)
        case _:
            raise UnsupportedBodyException(
                "body must be a string or a bytes-like buffer, unless you include "
                f"the X-Amz-Content-Sha256 header. Received {type(body)}."
            )
    return sha256(data).hexdigest()


def canonical_request(
    *,
    method: str,
    path: str,
    query: str,
    headers: str,
    signed_headers: Iterable[str],
    hashed_payload: str,
) -> str:
    """Join the canonical components.

    The SigV4 specification defines the canonical request to be:
        <HTTPMethod>\\n
        <CanonicalURI>\\n
        <CanonicalQueryString>\\n
        <CanonicalHeaders>\\n
        <SignedHeaders>\\n
        <HashedPayload>
    """
    return (
        f"{method.upper()}\n"
        f"{path}\n"
        f"{query}\n"
        f"{headers}\n"
        f"{';'.join(signed_headers)}\n"
        f"{hashed_payload}"
    )


def credential_scope(date: str, region: str, service: str) -> str:
    """Scope format: ``<YYYYMMDD>/<region>/<service>/aws4_request``."""
    return f"{date[0:8]}/{region}/{service}/aws4_request"


def string_to_sign(*, date: str, scope: str, canonical_request: str) -> str:
    """The SigV4 specification defines the string to sign as:
        Algorithm \\n
        RequestDateTime \\n
        CredentialScope  \\n
        HashedCanonicalRequest
    """
    return (
        f"{SIGV4_ALGORITHM}\n"
        f"{date}\n"
        f"{scope}\n"
        f"{sha256(canonical_request.encode()).hexdigest()}"
    )
