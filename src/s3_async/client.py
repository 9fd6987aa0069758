import asyncio
import datetime
import logging
from os import environ
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Tuple
from urllib.parse import urlsplit

import aiohttp
from yarl import URL

from .canonical import canonical_query_string, normalize_path
from .credentials import Credentials, credentials_from_environ
from .responses import (
    SIGNATURE_MISMATCH,
    Bucket,
    ObjectList,
    S3Result,
    parse_buckets,
    parse_error,
    parse_object_list,
)
from .signer import sign_request

logger = logging.getLogger("s3io")
logger.addHandler(logging.NullHandler())

Method = Literal["GET", "PUT", "DELETE", "HEAD"]

DEFAULT_REGION: str = "us-east-1"

LOCATION_CONSTRAINT: str = (
    '<CreateBucketConfiguration xmlns="http://s3.amazonaws.com/doc/2006-03-01/">'
    "<LocationConstraint>{region}</LocationConstraint>"
    "</CreateBucketConfiguration>"
)


class S3AsyncClient:
    """
    Async client for S3-compatible object storage using aiohttp.

    Every request is signed with AWS Signature Version 4. Failures reported
    by the service are returned as :class:`S3Result` values carrying an
    :class:`S3ErrorDetail`; call :meth:`S3Result.unwrap` to raise instead.

    :param client_factory: Factory function to create an aiohttp ClientSession.
    :type client_factory: Callable[[], Awaitable[aiohttp.ClientSession]]
    :param region: AWS region (e.g., "us-east-1"). Falls back to ``AWS_REGION``,
        ``AWS_DEFAULT_REGION`` and finally "us-east-1".
    :type region: Optional[str]
    :param access_key: AWS access key.
    :type access_key: Optional[str]
    :param secret_key: AWS secret key.
    :type secret_key: Optional[str]
    :param session_token: AWS session token for temporary credentials.
    :type session_token: Optional[str]
    :param endpoint: Custom S3-compatible endpoint (e.g., "http://localhost:9000").
        Buckets are then addressed path-style.
    :type endpoint: Optional[str]
    :param user_agent: Custom user-agent string for tracking requests.
    :type user_agent: str
    :raises ConfigurationError: If no credentials are given or found in the
        environment.
    """

    def __init__(
        self,
        client_factory: Optional[Callable[[], Awaitable[aiohttp.ClientSession]]] = None,
        region: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        session_token: Optional[str] = None,
        endpoint: Optional[str] = None,
        user_agent: str = "S3AsyncClient/0.1.0",
    ):
        self.region = (
            region
            or environ.get("AWS_REGION")
            or environ.get("AWS_DEFAULT_REGION")
            or DEFAULT_REGION
        )

        self.path_style = endpoint is not None
        self.endpoint = (endpoint or f"https://s3.{self.region}.amazonaws.com").rstrip(
            "/"
        )

        parsed = urlsplit(self.endpoint)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"Invalid endpoint: {self.endpoint}")
        self.scheme = parsed.scheme
        self.netloc = parsed.netloc

        self.user_agent = user_agent

        self.client_factory = client_factory
        self.client: aiohttp.ClientSession

        self.client_factory_lock = asyncio.Lock()

        if access_key and secret_key:
            logger.debug("Using defined AWS access_key and secret_key")
            self.credentials = Credentials(
                access_key=access_key,
                secret_key=secret_key,
                session_token=session_token,
            )
        else:
            self.credentials = credentials_from_environ()

    async def __aenter__(self) -> "S3AsyncClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if hasattr(self, "client"):
            await self.client.close()
            del self.client

    async def _session(self) -> aiohttp.ClientSession:
        if not hasattr(self, "client"):
            async with self.client_factory_lock:
                if not hasattr(self, "client"):
                    logger.debug("Setting up client")
                    if self.client_factory:
                        logger.debug("User defined client_factory")
                        self.client = await self.client_factory()
                    else:
                        # Return object bytes as stored, even gzip-encoded ones
                        self.client = aiohttp.ClientSession(auto_decompress=False)

        return self.client

    def _address(
        self, bucket: Optional[str], key: Optional[str]
    ) -> Tuple[str, str]:
        """Return ``(host, path)`` for a bucket/key pair."""
        key_path = f"/{key}" if key else ""

        if bucket is None:
            return self.netloc, normalize_path(key_path)

        if self.path_style:
            return self.netloc, normalize_path(f"/{bucket}{key_path}")

        return f"{bucket}.{self.netloc}", normalize_path(key_path)

    async def request(
        self,
        method: Method,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
        query: Optional[Dict[str, str]] = None,
        body: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
    ) -> S3Result[bytes]:
        """
        Send a signed request and return the raw result.

        This is the single request path shared by every operation.

        :param method: HTTP method.
        :type method: Literal["GET", "PUT", "DELETE", "HEAD"]
        :param bucket: Bucket name, ``None`` for service-level requests.
        :type bucket: Optional[str]
        :param key: Object key.
        :type key: Optional[str]
        :param query: Query parameters.
        :type query: Optional[Dict[str, str]]
        :param body: Request body.
        :type body: bytes
        :param headers: Extra headers, signed along with the rest.
        :type headers: Optional[Dict[str, str]]
        :return: Result holding the response body, or the service error.
        :rtype: S3Result[bytes]
        :raises aiohttp.ClientError: Raised if the HTTP round trip fails.
        """
        session = await self._session()

        host, path = self._address(bucket, key)
        query = query or {}

        timestamp = datetime.datetime.now(datetime.timezone.utc).replace(
            microsecond=0
        )

        signed_headers, canonical_request = sign_request(
            method,
            host,
            path,
            query,
            headers,
            body,
            credentials=self.credentials,
            region=self.region,
            timestamp=timestamp,
        )

        # A caller-supplied user-agent is signed and must go out unchanged
        if not any(name.lower() == "user-agent" for name in signed_headers):
            signed_headers["User-Agent"] = self.user_agent

        query_string = canonical_query_string(query)
        url = f"{self.scheme}://{host}{path}"
        if query_string:
            url += f"?{query_string}"

        logger.debug(f"{method} {url}")

        response = await session.request(
            method,
            URL(url, encoded=True),
            data=body,
            headers=signed_headers,
        )
        response_body = await response.read()
        response_headers = {k: v for k, v in response.headers.items()}

        logger.debug(f"{method} {url} -> {response.status}")

        if 200 <= response.status < 300:
            return S3Result(
                status=response.status,
                value=response_body,
                headers=response_headers,
                canonical_request=canonical_request,
            )

        error = parse_error(response_body, response.status)
        if error.code == SIGNATURE_MISMATCH:
            logger.debug(
                f"Signature mismatch, local canonical request:\n{canonical_request}"
            )

        return S3Result(
            status=response.status,
            error=error,
            headers=response_headers,
            canonical_request=canonical_request,
        )

    async def list_buckets(self) -> S3Result[List[Bucket]]:
        """
        List the buckets owned by the caller.

        :return: Result holding the buckets.
        :rtype: S3Result[List[Bucket]]
        """
        result = await self.request("GET")
        return _convert(result, parse_buckets)

    async def create_bucket(self, bucket: str) -> S3Result[None]:
        """
        Create a bucket in the client region.

        :param bucket: Bucket name.
        :type bucket: str
        :return: Result with no value on success.
        :rtype: S3Result[None]
        """
        body = b""
        # us-east-1 rejects an explicit location constraint
        if self.region != DEFAULT_REGION:
            body = LOCATION_CONSTRAINT.format(region=self.region).encode()

        result = await self.request("PUT", bucket, body=body)
        return _convert(result, lambda body: None)

    async def delete_bucket(self, bucket: str) -> S3Result[None]:
        """
        Delete an empty bucket.

        :param bucket: Bucket name.
        :type bucket: str
        :return: Result with no value on success.
        :rtype: S3Result[None]
        """
        result = await self.request("DELETE", bucket)
        return _convert(result, lambda body: None)

    async def list_objects(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        delimiter: Optional[str] = None,
        max_keys: Optional[int] = None,
        continuation_token: Optional[str] = None,
    ) -> S3Result[ObjectList]:
        """
        List objects in a bucket (ListObjectsV2).

        :param bucket: Bucket name.
        :type bucket: str
        :param prefix: Only list keys starting with this prefix.
        :type prefix: Optional[str]
        :param delimiter: Group keys sharing a prefix up to this delimiter.
        :type delimiter: Optional[str]
        :param max_keys: Maximum number of keys to return.
        :type max_keys: Optional[int]
        :param continuation_token: Token from a previous truncated listing.
        :type continuation_token: Optional[str]
        :return: Result holding the listing.
        :rtype: S3Result[ObjectList]
        """
        query = {"list-type": "2"}
        if prefix is not None:
            query["prefix"] = prefix
        if delimiter is not None:
            query["delimiter"] = delimiter
        if max_keys is not None:
            query["max-keys"] = str(max_keys)
        if continuation_token is not None:
            query["continuation-token"] = continuation_token

        result = await self.request("GET", bucket, query=query)
        return _convert(result, parse_object_list)

    async def get_object(self, bucket: str, key: str) -> S3Result[bytes]:
        """
        Download an object.

        :param bucket: Bucket name.
        :type bucket: str
        :param key: Object key.
        :type key: str
        :return: Result holding the object bytes as stored.
        :rtype: S3Result[bytes]
        """
        return await self.request("GET", bucket, key)

    async def head_object(self, bucket: str, key: str) -> S3Result[Dict[str, str]]:
        """
        Fetch object metadata without its content.

        :param bucket: Bucket name.
        :type bucket: str
        :param key: Object key.
        :type key: str
        :return: Result holding the response headers.
        :rtype: S3Result[Dict[str, str]]
        """
        result = await self.request("HEAD", bucket, key)
        return _convert(result, lambda body: result.headers)

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
    ) -> S3Result[None]:
        """
        Upload an object in a single request.

        :param bucket: Bucket name.
        :type bucket: str
        :param key: Object key.
        :type key: str
        :param body: Object content.
        :type body: bytes
        :param content_type: Content type stored with the object.
        :type content_type: Optional[str]
        :return: Result with no value on success.
        :rtype: S3Result[None]
        """
        headers = {}
        if content_type:
            headers["content-type"] = content_type

        result = await self.request("PUT", bucket, key, body=body, headers=headers)
        return _convert(result, lambda body: None)

    async def delete_object(self, bucket: str, key: str) -> S3Result[None]:
        """
        Delete an object.

        :param bucket: Bucket name.
        :type bucket: str
        :param key: Object key.
        :type key: str
        :return: Result with no value on success.
        :rtype: S3Result[None]
        """
        result = await self.request("DELETE", bucket, key)
        return _convert(result, lambda body: None)


def _convert(result: S3Result[bytes], parse: Callable[[bytes], Any]) -> S3Result[Any]:
    if not result.ok:
        return S3Result(
            status=result.status,
            error=result.error,
            headers=result.headers,
            canonical_request=result.canonical_request,
        )

    return S3Result(
        status=result.status,
        value=parse(result.value or b""),
        headers=result.headers,
        canonical_request=result.canonical_request,
    )
