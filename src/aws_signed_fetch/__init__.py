# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""AWS Signature Version 4 request signing paired with a resilient async HTTP client.

Works with AWS services as well as S3 compatible stores such as Cloudflare R2 and
Backblaze B2.
"""

from __future__ import annotations

from ._http import URI, AWSRequest, AWSResponse, Field, Fields
from ._identity import AWSCredentialIdentity
from .abort import AbortSignal
from .client import AttemptRecord, AWSClient
from .config import AWSClientConfig
from .exceptions import (
    InvalidRetryConfigurationException,
    RequestAbortedException,
    ResponseNotOkayException,
    UnsupportedBodyException,
)
from .http import AIOHTTPClient, AIOHTTPClientConfig
from .keys import InMemorySigningKeyCache, LRUSigningKeyCache
from .signers import SigV4Signer, SigV4SigningProperties

__license__ = "Apache-2.0"
__version__ = "0.1.0"

__all__ = (
    "URI",
    "AIOHTTPClient",
    "AIOHTTPClientConfig",
    "AWSClient",
    "AWSClientConfig",
    "AWSCredentialIdentity",
    "AWSRequest",
    "AWSResponse",
    "AbortSignal",
    "AttemptRecord",
    "Field",
    "Fields",
    "InMemorySigningKeyCache",
    "InvalidRetryConfigurationException",
    "LRUSigningKeyCache",
    "RequestAbortedException",
    "ResponseNotOkayException",
    "SigV4Signer",
    "SigV4SigningProperties",
    "UnsupportedBodyException",
)
