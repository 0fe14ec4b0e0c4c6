# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import datetime
import hmac
import logging
from copy import deepcopy
from dataclasses import dataclass, replace
from hashlib import sha256
from typing import TypedDict
from urllib.parse import quote, urlencode

from . import canonical
from ._http import URI, AWSRequest, Field
from ._identity import AWSCredentialIdentity
from .canonical import SIGV4_ALGORITHM, UNSIGNED_PAYLOAD
from .exceptions import MissingExpectedParameterException
from .inference import guess_service_region
from .keys import SigningKeyCache, SigningKeyProvider

_LOGGER = logging.getLogger(__name__)

DEFAULT_REGION: str = "us-east-1"
DEFAULT_PRESIGN_EXPIRES: str = "86400"


class SigV4SigningProperties(TypedDict, total=False):
    """Caller supplied signing options. Anything omitted is resolved per request."""

    service: str
    region: str
    date: str
    sign_query: bool
    append_session_token: bool
    all_headers: bool
    single_encode: bool


@dataclass(kw_only=True, frozen=True)
class SigningContext:
    """Fully resolved signing options for one request."""

    service: str
    """Signing name of the service. Empty when it could not be inferred."""

    region: str
    date: str
    """Signing time in ``YYYYMMDDTHHMMSSZ`` format."""

    sign_query: bool = False
    """Sign through query parameters (a presigned URL) instead of ``Authorization``."""

    append_session_token: bool = False
    """Append the session token after the signature instead of signing it."""

    all_headers: bool = False
    """Sign every request header, including the normally unsignable ones."""

    single_encode: bool = False
    """Skip the second URI encoding pass over the path."""

    @property
    def credential_scope(self) -> str:
        return canonical.credential_scope(self.date, self.region, self.service)


class SigV4Signer:
    """Request signer for applying the AWS Signature Version 4 algorithm.

    Derived signing keys are memoized for the lifetime of the signer.
    """

    def __init__(self, *, cache: SigningKeyCache | None = None) -> None:
        self.key_provider = SigningKeyProvider(cache)

    def sign(
        self,
        *,
        request: AWSRequest,
        identity: AWSCredentialIdentity,
        properties: SigV4SigningProperties | None = None,
    ) -> AWSRequest:
        """Generate and apply a SigV4 Signature to a copy of the supplied request.

        :param request: An AWSRequest to sign prior to sending to the service. It is
            never modified.
        :param identity: A set of credentials representing an AWS Identity or role
            capacity.
        :param properties: Signing options. ``service`` and ``region`` are inferred
            from the host when missing.
        """
        self._validate_identity(identity=identity)
        context = self.resolve_context(request=request, properties=properties or {})
        _LOGGER.debug(
            "Signing %s %s with scope %s",
            request.method,
            request.destination.host,
            context.credential_scope,
        )

        new_request = deepcopy(request)
        fields = new_request.fields
        fields.discard("Host")
        query = canonical.parse_query(new_request.destination.query)

        if (
            context.service == "s3"
            and not context.sign_query
            and "X-Amz-Content-Sha256" not in fields
        ):
            fields.set_field(
                Field(name="X-Amz-Content-Sha256", values=[UNSIGNED_PAYLOAD])
            )

        self._apply_parameter(context, new_request, query, "X-Amz-Date", context.date)
        if identity.session_token and not context.append_session_token:
            self._apply_parameter(
                context,
                new_request,
                query,
                "X-Amz-Security-Token",
                identity.session_token,
            )

        signed_headers = canonical.signable_header_names(
            fields, all_headers=context.all_headers
        )
        credential = f"{identity.access_key_id}/{context.credential_scope}"

        if context.sign_query:
            if context.service == "s3" and not _has_parameter(query, "X-Amz-Expires"):
                expires = fields.get_value("X-Amz-Expires") or DEFAULT_PRESIGN_EXPIRES
                _set_parameter(query, "X-Amz-Expires", expires)
            _set_parameter(query, "X-Amz-Algorithm", SIGV4_ALGORITHM)
            _set_parameter(query, "X-Amz-Credential", credential)
            _set_parameter(query, "X-Amz-SignedHeaders", ";".join(signed_headers))
            new_request.destination = _with_query(new_request, query)

        canonical_request = self.canonical_request(
            context=context, request=new_request
        )
        string_to_sign = self.string_to_sign(
            context=context, canonical_request=canonical_request
        )
        signature = self.signature(
            context=context,
            string_to_sign=string_to_sign,
            secret_key=identity.secret_access_key,
        )

        if context.sign_query:
            _set_parameter(query, "X-Amz-Signature", signature)
            if identity.session_token and context.append_session_token:
                _set_parameter(query, "X-Amz-Security-Token", identity.session_token)
            new_request.destination = _with_query(new_request, query)
        else:
            fields.set_field(
                self.generate_authorization_field(
                    credential=credential,
                    signed_headers=signed_headers,
                    signature=signature,
                )
            )
        return new_request

    def resolve_context(
        self, *, request: AWSRequest, properties: SigV4SigningProperties
    ) -> SigningContext:
        """Fill in the signing options the caller left out.

        The service and region are inferred from the destination when either is
        missing, falling back to ``us-east-1`` for the region. The date defaults to
        the current UTC time.
        """
        service = properties.get("service")
        region = properties.get("region")
        if not service or not region:
            guessed_service, guessed_region = guess_service_region(
                request.destination, request.fields
            )
            service = service or guessed_service
            region = region or guessed_region or DEFAULT_REGION

        date = properties.get("date")
        if not date:
            date = canonical.format_signing_date(datetime.datetime.now(datetime.UTC))

        return SigningContext(
            service=service,
            region=region,
            date=date,
            sign_query=properties.get("sign_query", False),
            append_session_token=(
                properties.get("append_session_token", False)
                or service == "iotdevicegateway"
            ),
            all_headers=properties.get("all_headers", False),
            single_encode=properties.get("single_encode", False),
        )

    def canonical_request(
        self, *, context: SigningContext, request: AWSRequest
    ) -> str:
        """The canonical request is a standardized string laying out the components used
        in the SigV4 signing algorithm. This is useful to quickly compare inputs to find
        signature mismatches and unintended variances.

        :param context: Resolved signing options.
        :param request: An AWSRequest to use for generating a SigV4 signature.
        :raises UnsupportedBodyException: If the body can't be hashed and no
            ``X-Amz-Content-Sha256`` header is present.
        """
        fields = request.fields
        hashed_payload = canonical.payload_hash(
            request.body,
            content_sha256=fields.get_value("X-Amz-Content-Sha256"),
            service=context.service,
            sign_query=context.sign_query,
        )
        signed_headers = canonical.signable_header_names(
            fields, all_headers=context.all_headers
        )
        return canonical.canonical_request(
            method=request.method or ("POST" if request.body else "GET"),
            path=canonical.canonical_path(
                request.destination.path,
                service=context.service,
                single_encode=context.single_encode,
            ),
            query=canonical.canonical_query(
                canonical.parse_query(request.destination.query),
                service=context.service,
            ),
            headers=canonical.canonical_headers(
                signed_headers, fields, request.destination.host_header
            ),
            signed_headers=signed_headers,
            hashed_payload=hashed_payload,
        )

    def string_to_sign(self, *, context: SigningContext, canonical_request: str) -> str:
        """The string to sign concatenates the algorithm, the signing timestamp, the
        credential scope and a hash of the canonical request.

        :param context: Resolved signing options.
        :param canonical_request: String generated by :py:meth:`canonical_request`.
        """
        return canonical.string_to_sign(
            date=context.date,
            scope=context.credential_scope,
            canonical_request=canonical_request,
        )

    def signature(
        self, *, context: SigningContext, string_to_sign: str, secret_key: str
    ) -> str:
        """Sign the string to sign with the scope bound signing key."""
        signing_key = self.key_provider.get_signing_key(
            secret_key=secret_key,
            date=context.date,
            region=context.region,
            service=context.service,
        )
        return hmac.new(
            key=signing_key, msg=string_to_sign.encode(), digestmod=sha256
        ).hexdigest()

    def generate_authorization_field(
        self, *, credential: str, signed_headers: list[str], signature: str
    ) -> Field:
        """Generate the `Authorization` field.

        :param credential:
            Credential scope string for generating the Authorization header.
            Defined as:
                <access_key>/<date>/<region>/<service>/<request_type>
        :param signed_headers:
            A list of the field names used in signing.
        :param signature:
            Final hash of the SigV4 signing algorithm generated from the
            canonical request and string to sign.
        """
        signed_headers_str = ";".join(signed_headers)
        auth_str = (
            f"{SIGV4_ALGORITHM} Credential={credential}, "
            f"SignedHeaders={signed_headers_str}, Signature={signature}"
        )
        return Field(name="Authorization", values=[auth_str])

    def _validate_identity(self, *, identity: AWSCredentialIdentity) -> None:
        """Perform runtime and expiration checks before attempting signing."""
        if not isinstance(identity, AWSCredentialIdentity):  # pyright: ignore
            raise ValueError(
                "Received unexpected value for identity parameter. Expected "
                f"AWSCredentialIdentity but received {type(identity)}."
            )
        if not identity.access_key_id:
            raise MissingExpectedParameterException("access_key_id is required.")
        if not identity.secret_access_key:
            raise MissingExpectedParameterException("secret_access_key is required.")
        if identity.is_expired:
            raise ValueError(
                f"Provided identity expired at {identity.expiration}. Please "
                "refresh the credentials or update the expiration parameter."
            )

    def _apply_parameter(
        self,
        context: SigningContext,
        request: AWSRequest,
        query: list[tuple[str, str]],
        name: str,
        value: str,
    ) -> None:
        # Query mode carries signing parameters in the URL, header mode in fields
        if context.sign_query:
            _set_parameter(query, name, value)
        else:
            request.fields.set_field(Field(name=name, values=[value]))


def _has_parameter(query: list[tuple[str, str]], name: str) -> bool:
    return any(key == name for key, _ in query)


def _set_parameter(query: list[tuple[str, str]], name: str, value: str) -> None:
    """Replace the first ``name`` pair and drop the rest, or append a new pair."""
    replaced = False
    updated: list[tuple[str, str]] = []
    for key, current in query:
        if key != name:
            updated.append((key, current))
        elif not replaced:
            updated.append((key, value))
            replaced = True
    if not replaced:
        updated.append((name, value))
    query[:] = updated


def _with_query(request: AWSRequest, query: list[tuple[str, str]]) -> URI:
    return replace(
        request.destination, query=urlencode(query, quote_via=quote) or None
    )
