# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from dataclasses import dataclass, field
from datetime import UTC, datetime


@dataclass(kw_only=True, frozen=True)
class AWSCredentialIdentity:
    """Long lived AWS credentials held by a single client instance."""

    access_key_id: str
    """A unique identifier for an AWS user or role."""

    secret_access_key: str = field(repr=False)
    """A secret key used in conjunction with the access key ID to authenticate
    programmatic access to AWS services."""

    session_token: str | None = field(default=None, repr=False)
    """A temporary token used to specify the current session for the supplied
    credentials."""

    expiration: datetime | None = None
    """The expiration time of the credentials, in UTC."""

    @property
    def is_expired(self) -> bool:
        """Whether the credentials are expired."""
        if self.expiration is None:
            return False
        return datetime.now(tz=UTC) >= self.expiration
