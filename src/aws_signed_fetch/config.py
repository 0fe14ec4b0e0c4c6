# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from dataclasses import dataclass, field

from ._identity import AWSCredentialIdentity
from .exceptions import (
    InvalidRetryConfigurationException,
    MissingExpectedParameterException,
)


@dataclass(kw_only=True, frozen=True)
class AWSClientConfig:
    """Immutable configuration for an :py:class:`~aws_signed_fetch.client.AWSClient`.

    Credentials are the only required values. Rotating credentials means building a
    new config and a new client, which also discards the signing key cache.
    """

    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: str | None = field(default=None, repr=False)

    service: str | None = None
    """Default signing service. Inferred from the host name when unset."""

    region: str | None = None
    """Default signing region. Inferred from the host name when unset."""

    retries: int = 3
    """Number of retries after the initial attempt. Can be overridden per call."""

    initial_backoff: float = 0.05
    """Upper bound, in seconds, of the jittered delay before the first retry."""

    max_backoff: float | None = None
    """Optional cap, in seconds, on the un-jittered delay."""

    def __post_init__(self) -> None:
        if not self.access_key_id:
            raise MissingExpectedParameterException("access_key_id is required.")
        if not self.secret_access_key:
            raise MissingExpectedParameterException("secret_access_key is required.")
        if self.retries < 0:
            raise InvalidRetryConfigurationException(
                f"retries must not be negative, got {self.retries}."
            )
        if self.initial_backoff < 0:
            raise ValueError(
                f"initial_backoff must not be negative, got {self.initial_backoff}."
            )
        if self.max_backoff is not None and self.max_backoff < 0:
            raise ValueError(
                f"max_backoff must not be negative, got {self.max_backoff}."
            )

    @property
    def identity(self) -> AWSCredentialIdentity:
        return AWSCredentialIdentity(
            access_key_id=self.access_key_id,
            secret_access_key=self.secret_access_key,
            session_token=self.session_token,
        )
