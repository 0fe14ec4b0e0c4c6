# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import hmac
from collections import OrderedDict
from hashlib import sha256
from typing import Protocol


def derive_signing_key(secret_key: str, date: str, region: str, service: str) -> bytes:
    """Derive the scope bound SigV4 signing key.

    Components of Signing Key Calculation

        DateKey              = HMAC-SHA256("AWS4"+"<SecretAccessKey>", "<YYYYMMDD>")
        DateRegionKey        = HMAC-SHA256(<DateKey>, "<aws-region>")
        DateRegionServiceKey = HMAC-SHA256(<DateRegionKey>, "<aws-service>")
        SigningKey           = HMAC-SHA256(<DateRegionServiceKey>, "aws4_request")

    :param date: Either ``YYYYMMDD`` or a full SigV4 timestamp.
    """
    k_date = hmac_sha256(f"AWS4{secret_key}".encode(), date[0:8])
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    return hmac_sha256(k_service, "aws4_request")


def hmac_sha256(key: bytes, value: str) -> bytes:
    return hmac.new(key=key, msg=value.encode(), digestmod=sha256).digest()


def cache_key(secret_key: str, date: str, region: str, service: str) -> str:
    return ",".join((secret_key, date[0:8], region, service))


class SigningKeyCache(Protocol):
    """Storage for derived signing keys.

    Keys are a pure function of their cache key, so implementations may drop or
    overwrite entries at any time.
    """

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...


class InMemorySigningKeyCache(SigningKeyCache):
    """Unbounded dictionary cache.

    Grows by one entry per day for every region and service pair in use.
    """

    def __init__(self) -> None:
        self._entries: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._entries.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._entries[key] = value

    def __len__(self) -> int:
        return len(self._entries)


class LRUSigningKeyCache(SigningKeyCache):
    """Cache holding at most ``max_size`` keys, evicting the least recently used."""

    def __init__(self, max_size: int = 128) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}.")
        self._max_size = max_size
        self._entries: OrderedDict[str, bytes] = OrderedDict()

    def get(self, key: str) -> bytes | None:
        value = self._entries.get(key)
        if value is not None:
            self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: bytes) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


class SigningKeyProvider:
    """Memoizes :py:func:`derive_signing_key` through a :py:class:`SigningKeyCache`.

    Derivation is synchronous, so within one event loop no other signing can run
    between the lookup and the store.
    """

    def __init__(self, cache: SigningKeyCache | None = None) -> None:
        self.cache = cache if cache is not None else InMemorySigningKeyCache()
        self.hits = 0
        self.misses = 0

    def get_signing_key(
        self, *, secret_key: str, date: str, region: str, service: str
    ) -> bytes:
        key = cache_key(secret_key, date, region, service)
        signing_key = self.cache.get(key)
        if signing_key is not None:
            self.hits += 1
            return signing_key

        self.misses += 1
        signing_key = derive_signing_key(secret_key, date, region, service)
        self.cache.set(key, signing_key)
        return signing_key
