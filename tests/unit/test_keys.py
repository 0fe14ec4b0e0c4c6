# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest
from aws_signed_fetch.keys import (
    InMemorySigningKeyCache,
    LRUSigningKeyCache,
    SigningKeyProvider,
    cache_key,
    derive_signing_key,
)

SECRET_KEY = "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"


def test_derive_signing_key() -> None:
    key = derive_signing_key(SECRET_KEY, "20120215", "us-east-1", "iam")
    assert key.hex() == (
        "f4780e2d9f65fa895f9c67b32ce1baf0b0d8a43505a000a1a9e090d414db404d"
    )


def test_derive_signing_key_only_uses_the_day() -> None:
    assert derive_signing_key(
        SECRET_KEY, "20120215T235959Z", "us-east-1", "iam"
    ) == derive_signing_key(SECRET_KEY, "20120215", "us-east-1", "iam")


def test_cache_key() -> None:
    assert (
        cache_key("secret", "20150830T123600Z", "eu-west-1", "s3")
        == "secret,20150830,eu-west-1,s3"
    )


def test_provider_memoizes_within_a_day() -> None:
    provider = SigningKeyProvider()
    first = provider.get_signing_key(
        secret_key=SECRET_KEY, date="20150830T000000Z", region="us-east-1", service="s3"
    )
    second = provider.get_signing_key(
        secret_key=SECRET_KEY, date="20150830T235959Z", region="us-east-1", service="s3"
    )
    assert first == second
    assert provider.misses == 1
    assert provider.hits == 1


@pytest.mark.parametrize(
    "date, region, service",
    [
        ("20150831T000000Z", "us-east-1", "s3"),
        ("20150830T000000Z", "eu-west-1", "s3"),
        ("20150830T000000Z", "us-east-1", "ec2"),
    ],
)
def test_provider_misses_on_scope_change(date: str, region: str, service: str) -> None:
    provider = SigningKeyProvider()
    provider.get_signing_key(
        secret_key=SECRET_KEY, date="20150830T000000Z", region="us-east-1", service="s3"
    )
    provider.get_signing_key(
        secret_key=SECRET_KEY, date=date, region=region, service=service
    )
    assert provider.misses == 2
    assert provider.hits == 0
    assert isinstance(provider.cache, InMemorySigningKeyCache)
    assert len(provider.cache) == 2


def test_provider_uses_supplied_cache() -> None:
    cache = LRUSigningKeyCache(max_size=4)
    provider = SigningKeyProvider(cache)
    provider.get_signing_key(
        secret_key=SECRET_KEY, date="20150830", region="us-east-1", service="s3"
    )
    assert provider.cache is cache
    assert len(cache) == 1


def test_lru_cache_evicts_least_recently_used() -> None:
    cache = LRUSigningKeyCache(max_size=2)
    cache.set("a", b"1")
    cache.set("b", b"2")
    assert cache.get("a") == b"1"
    cache.set("c", b"3")
    assert cache.get("b") is None
    assert cache.get("a") == b"1"
    assert cache.get("c") == b"3"
    assert len(cache) == 2


def test_lru_cache_rejects_invalid_size() -> None:
    with pytest.raises(ValueError):
        LRUSigningKeyCache(max_size=0)
