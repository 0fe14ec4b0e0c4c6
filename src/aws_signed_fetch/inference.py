# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Heuristics mapping a request's host name to a signing service and region.

Inference only runs when the caller doesn't supply both values. The rules are
order sensitive; reordering them changes results for ambiguous host names.
"""

import logging
import re

from .interfaces.http import URI, Fields

_LOGGER = logging.getLogger(__name__)

# Endpoint prefixes whose signing name differs from the prefix.
HOST_SERVICES: dict[str, str] = {
    "appstream2": "appstream",
    "cloudhsmv2": "cloudhsm",
    "email": "ses",
    "marketplace": "aws-marketplace",
    "mobile": "AWSMobileHubService",
    "pinpoint": "mobiletargeting",
    "queue": "sqs",
    "git-codecommit": "codecommit",
    "mturk-requester-sandbox": "mturk-requester",
    "personalize-runtime": "personalize",
}

_BACKBLAZE_HOST = re.compile(r"^(?:[^.]+\.)?s3\.([^.]+)\.backblazeb2\.com$")
_AWS_HOST = re.compile(r"([^.]+)\.(?:([^.]*)\.)?amazonaws\.com(?:\.cn)?$")
_S3_REGION_PREFIX = re.compile(r"^fips-|^external-1")
_NUMERIC_SUFFIX = re.compile(r"-\d$")


def guess_service_region(uri: URI, fields: Fields) -> tuple[str, str]:
    """Infer ``(service, region)`` from the destination host.

    Either value is the empty string when it can't be inferred; callers apply
    their own defaults.

    :param uri: The request destination.
    :param fields: The request headers, consulted for ``X-Amz-Target``.
    """
    hostname = uri.host
    path = uri.path or "/"

    if hostname.endswith(".r2.cloudflarestorage.com"):
        return "s3", "auto"
    if hostname.endswith(".backblazeb2.com"):
        if (match := _BACKBLAZE_HOST.match(hostname)) is not None:
            return "s3", match.group(1)
        return "", ""

    service, region = "", None
    if (match := _AWS_HOST.search(hostname.replace("dualstack.", "", 1))) is not None:
        service, region = match.group(1), match.group(2)

    if region == "us-gov":
        region = "us-gov-west-1"
    elif region in ("s3", "s3-accelerate"):
        region = "us-east-1"
        service = "s3"
    elif service == "iot":
        if hostname.startswith("iot."):
            service = "execute-api"
        elif hostname.startswith("data.jobs.iot."):
            service = "iot-jobs-data"
        else:
            service = "iotdevicegateway" if path == "/mqtt" else "iotdata"
    elif service == "autoscaling":
        target_prefix = (fields.get_value("X-Amz-Target") or "").split(".")[0]
        if target_prefix == "AnyScaleFrontendService":
            service = "application-autoscaling"
        elif target_prefix == "AnyScaleScalingPlannerFrontendService":
            service = "autoscaling-plans"
    elif region is None and service.startswith("s3-"):
        region = _S3_REGION_PREFIX.sub("", service[3:], count=1)
        service = "s3"
    elif service.endswith("-fips"):
        service = service[:-5]
    elif (
        region
        and _NUMERIC_SUFFIX.search(service)
        and not _NUMERIC_SUFFIX.search(region)
    ):
        service, region = region, service

    service = HOST_SERVICES.get(service) or service
    _LOGGER.debug(
        "Inferred service %r and region %r from host %r", service, region, hostname
    )
    return service, region or ""
