# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .interfaces.http import Response


class BaseAWSSDKException(Exception):
    """Top-level exception to capture SDK-related errors."""


class MissingExpectedParameterException(BaseAWSSDKException, ValueError):
    """A required credential, URL, or signing property was not provided."""


class InvalidRetryConfigurationException(BaseAWSSDKException, ValueError):
    """The retry configuration can never produce an attempt."""


class UnsupportedBodyException(BaseAWSSDKException, TypeError):
    """The request body can't be hashed without consuming it.

    Supply an ``X-Amz-Content-Sha256`` header to sign streaming bodies.
    """


class RetryError(BaseAWSSDKException):
    """Raised by retry strategies when no further attempts are allowed."""


class RequestAbortedException(BaseAWSSDKException):
    """The call was cancelled by its abort signal or by its timeout."""

    def __init__(self, reason: BaseException | None = None):
        self.reason = reason
        message = "The request was aborted"
        if reason is not None:
            message = f"{message}: {reason!r}"
        super().__init__(message)


class ResponseNotOkayException(BaseAWSSDKException):
    """A custom response validator rejected the final response."""

    def __init__(self, response: "Response"):
        self.response = response
        super().__init__(f"Response not okay, status: {response.status}")
