from typing import Dict, Generic, List, Optional, TypeVar
from xml.etree import ElementTree as ET

import msgspec

T = TypeVar("T")

SIGNATURE_MISMATCH: str = "SignatureDoesNotMatch"


class Bucket(msgspec.Struct, frozen=True):
    name: str
    creation_date: Optional[str] = None


class ObjectInfo(msgspec.Struct, frozen=True):
    key: str
    size: int = 0
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    storage_class: Optional[str] = None


class ObjectList(msgspec.Struct):
    bucket: Optional[str] = None
    prefix: Optional[str] = None
    contents: List[ObjectInfo] = []
    common_prefixes: List[str] = []
    is_truncated: bool = False
    next_continuation_token: Optional[str] = None
    key_count: int = 0


class S3ErrorDetail(msgspec.Struct, frozen=True):
    code: str
    message: str = ""
    key: Optional[str] = None
    resource: Optional[str] = None
    request_id: Optional[str] = None
    # Only reported by the service for SignatureDoesNotMatch
    canonical_request: Optional[str] = None
    string_to_sign: Optional[str] = None


class S3Error(Exception):
    """
    A failure reported by the storage service.

    :param detail: The parsed error document.
    :type detail: S3ErrorDetail
    :param status: HTTP status of the response.
    :type status: int
    :param canonical_request: Canonical request computed locally for the
        failed request, kept for diagnostics.
    :type canonical_request: Optional[str]
    """

    def __init__(
        self,
        detail: S3ErrorDetail,
        status: int,
        canonical_request: Optional[str] = None,
    ):
        self.detail = detail
        self.status = status
        self.canonical_request = canonical_request
        message = f"S3 error {status}: {detail.code}"
        if detail.message:
            message += f" — {detail.message}"
        if detail.key:
            message += f" (key: {detail.key})"
        super().__init__(message)


class S3Result(msgspec.Struct, Generic[T]):
    """
    Outcome of a request: either ``value`` or ``error`` is set.

    Callers choose whether a failure is fatal by calling :meth:`unwrap`, or
    inspect :attr:`error` and carry on.
    """

    status: int
    value: Optional[T] = None
    error: Optional[S3ErrorDetail] = None
    headers: Dict[str, str] = {}
    canonical_request: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise S3Error(self.error, self.status, self.canonical_request)
        return self.value  # type: ignore

    def describe(self) -> str:
        if self.error is None:
            return f"OK ({self.status})"

        lines = [str(S3Error(self.error, self.status))]
        if self.error.request_id:
            lines.append(f"Request id: {self.error.request_id}")

        if self.error.code == SIGNATURE_MISMATCH:
            # Diagnostic only, clock skew can make the two differ anyway
            if self.canonical_request is not None:
                lines.append("Local canonical request:")
                lines.append(self.canonical_request)
            if self.error.canonical_request is not None:
                lines.append("Service canonical request:")
                lines.append(self.error.canonical_request)
            if self.error.string_to_sign is not None:
                lines.append("Service string to sign:")
                lines.append(self.error.string_to_sign)

        return "\n".join(lines)


def _local(tag: str) -> str:
    # Strip the "{namespace}" prefix S3 puts on every element
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _text(element: ET.Element, name: str) -> Optional[str]:
    for child in element:
        if _local(child.tag) == name:
            return child.text or ""
    return None


def _find(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element.iter():
        if _local(child.tag) == name:
            return child
    return None


STATUS_CODES: Dict[int, str] = {
    301: "PermanentRedirect",
    307: "TemporaryRedirect",
    400: "BadRequest",
    403: "AccessDenied",
    404: "NotFound",
    405: "MethodNotAllowed",
    409: "Conflict",
    412: "PreconditionFailed",
    500: "InternalError",
    501: "NotImplemented",
    503: "ServiceUnavailable",
}


def parse_error(body: bytes, status: int) -> S3ErrorDetail:
    """
    Parse an S3 ``<Error>`` document.

    HEAD responses and some proxies return no XML at all; the error code is
    then derived from the HTTP status and the raw body becomes the message.
    """
    fallback_code = STATUS_CODES.get(status, f"HTTP{status}")
    text = body.decode("utf-8", errors="replace").strip()

    if not text:
        return S3ErrorDetail(code=fallback_code)

    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return S3ErrorDetail(code=fallback_code, message=text)

    if _local(root.tag) != "Error":
        return S3ErrorDetail(code=fallback_code, message=text)

    return S3ErrorDetail(
        code=_text(root, "Code") or fallback_code,
        message=_text(root, "Message") or "",
        key=_text(root, "Key"),
        resource=_text(root, "Resource"),
        request_id=_text(root, "RequestId"),
        canonical_request=_text(root, "CanonicalRequest"),
        string_to_sign=_text(root, "StringToSign"),
    )


def parse_buckets(body: bytes) -> List[Bucket]:
    root = ET.fromstring(body)
    container = _find(root, "Buckets")
    if container is None:
        return []

    return [
        Bucket(
            name=_text(bucket, "Name") or "",
            creation_date=_text(bucket, "CreationDate"),
        )
        for bucket in _children(container, "Bucket")
    ]


def parse_object_list(body: bytes) -> ObjectList:
    root = ET.fromstring(body)

    contents = [
        ObjectInfo(
            key=_text(item, "Key") or "",
            size=int(_text(item, "Size") or 0),
            etag=_text(item, "ETag"),
            last_modified=_text(item, "LastModified"),
            storage_class=_text(item, "StorageClass"),
        )
        for item in _children(root, "Contents")
    ]
    common_prefixes = [
        _text(item, "Prefix") or "" for item in _children(root, "CommonPrefixes")
    ]

    return ObjectList(
        bucket=_text(root, "Name"),
        prefix=_text(root, "Prefix") or None,
        contents=contents,
        common_prefixes=common_prefixes,
        is_truncated=(_text(root, "IsTruncated") or "false").lower() == "true",
        next_continuation_token=_text(root, "NextContinuationToken"),
        key_count=int(_text(root, "KeyCount") or len(contents)),
    )
