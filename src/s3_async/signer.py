import datetime
import hashlib
import hmac
from functools import lru_cache
from typing import Dict, Mapping, Optional, Tuple

from .canonical import canonical_query_string, canonical_request, hash_payload
from .credentials import Credentials

SERVICE: str = "s3"
ALGORITHM: str = "AWS4-HMAC-SHA256"
TERMINATOR: str = "aws4_request"


def sign(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def amz_date(timestamp: datetime.datetime) -> str:
    return _as_utc(timestamp).strftime("%Y%m%dT%H%M%SZ")


def date_stamp(timestamp: datetime.datetime) -> str:
    return _as_utc(timestamp).strftime("%Y%m%d")


def _as_utc(timestamp: datetime.datetime) -> datetime.datetime:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=datetime.timezone.utc)
    return timestamp.astimezone(datetime.timezone.utc).replace(microsecond=0)


@lru_cache(maxsize=16)  # One entry per (secret, day, region, service)
def get_signature_key(
    secret_key: str, date_stamp: str, region: str, service: str = SERVICE
) -> bytes:
    k_date = sign(f"AWS4{secret_key}".encode(), date_stamp)
    k_region = sign(k_date, region)
    k_service = sign(k_region, service)
    k_signing = sign(k_service, TERMINATOR)
    return k_signing


def credential_scope(date_stamp: str, region: str, service: str = SERVICE) -> str:
    return "/".join([date_stamp, region, service, TERMINATOR])


def string_to_sign(amz_date: str, scope: str, canonical_request: str) -> str:
    return "\n".join(
        [
            ALGORITHM,
            amz_date,
            scope,
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ]
    )


def signature(signing_key: bytes, string_to_sign: str) -> str:
    return hmac.new(
        signing_key,
        string_to_sign.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def authorization_header(
    access_key: str, scope: str, signed_headers: str, signature: str
) -> str:
    return (
        f"{ALGORITHM} Credential={access_key}/{scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )


def sign_request(
    method: str,
    host: str,
    path: str,
    query: Optional[Mapping[str, str]],
    headers: Optional[Mapping[str, str]],
    body: bytes,
    credentials: Credentials,
    region: str,
    timestamp: datetime.datetime,
    service: str = SERVICE,
) -> Tuple[Dict[str, str], str]:
    """
    Sign a request with AWS Signature Version 4.

    The clock is never read here; ``timestamp`` fixes the signing context so
    that identical inputs always produce the same signature.

    :param method: HTTP method.
    :type method: str
    :param host: Value of the ``host`` header.
    :type host: str
    :param path: Percent-normalized absolute path (see ``normalize_path``).
    :type path: str
    :param query: Query parameters, rendered sorted by key.
    :type query: Optional[Mapping[str, str]]
    :param headers: Extra headers to sign, e.g. ``content-type`` or ``range``.
    :type headers: Optional[Mapping[str, str]]
    :param body: Raw request body, ``b""`` when there is none.
    :type body: bytes
    :param credentials: Credentials to sign with.
    :type credentials: Credentials
    :param region: Region of the signing scope (e.g. "us-east-1").
    :type region: str
    :param timestamp: UTC instant of the request.
    :type timestamp: datetime.datetime
    :return: The headers to send (every signed header plus ``Authorization``)
        and the canonical request they were derived from.
    :rtype: Tuple[Dict[str, str], str]
    """
    # https://docs.aws.amazon.com/IAM/latest/UserGuide/reference_sigv-create-signed-request.html
    request_date = amz_date(timestamp)
    request_day = date_stamp(timestamp)

    hashed_payload = hash_payload(body)

    signed: Dict[str, str] = {k.lower(): v for k, v in (headers or {}).items()}
    signed["host"] = host
    signed["x-amz-date"] = request_date
    signed["x-amz-content-sha256"] = hashed_payload
    signed.pop("x-amz-security-token", None)
    if credentials.session_token:
        signed["x-amz-security-token"] = credentials.session_token

    request, signed_headers = canonical_request(
        method,
        path,
        canonical_query_string(query or {}),
        signed,
        hashed_payload,
    )

    scope = credential_scope(request_day, region, service)

    signing_key = get_signature_key(
        credentials.secret_key, request_day, region, service
    )

    request_signature = signature(
        signing_key, string_to_sign(request_date, scope, request)
    )

    signed["Authorization"] = authorization_header(
        credentials.access_key, scope, signed_headers, request_signature
    )

    return signed, request
