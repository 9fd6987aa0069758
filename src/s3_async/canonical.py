import hashlib
from typing import Dict, List, Mapping, Tuple
from urllib.parse import quote

EMPTY_SHA256: str = hashlib.sha256(b"").hexdigest()


def hash_payload(body: bytes) -> str:
    return hashlib.sha256(body).hexdigest()


def normalize_path(path: str) -> str:
    """
    Percent-encode a URI path, keeping ``/`` and the unreserved characters.

    An empty path is rendered as ``/``.
    """
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    return quote(path, safe="/~")


def uri_encode(value: str) -> str:
    # Only A-Z a-z 0-9 - _ . ~ stay unescaped, space becomes %20
    return quote(value, safe="~")


def canonical_query_string(params: Mapping[str, str]) -> str:
    pairs = sorted((uri_encode(k), uri_encode(v)) for k, v in params.items())
    return "&".join(f"{k}={v}" for k, v in pairs)


def canonical_headers(headers: Mapping[str, str]) -> Tuple[str, str]:
    """
    Build the canonical header block and the signed-headers list.

    :param headers: Header mapping; names are compared case-insensitively.
    :type headers: Mapping[str, str]
    :return: ``(block, signed_headers)`` where every block line is
        ``name:value\\n`` and ``signed_headers`` is the ``;``-joined names.
    :rtype: Tuple[str, str]
    """
    normalized: Dict[str, str] = {}
    for name, value in headers.items():
        normalized[name.strip().lower()] = " ".join(str(value).split())

    sorted_header_keys: List[str] = sorted(normalized.keys())

    block = "".join(f"{k}:{normalized[k]}\n" for k in sorted_header_keys)
    signed_headers = ";".join(sorted_header_keys)

    return block, signed_headers


def canonical_request(
    method: str,
    path: str,
    query_string: str,
    headers: Mapping[str, str],
    payload_hash: str,
) -> Tuple[str, str]:
    # https://docs.aws.amazon.com/IAM/latest/UserGuide/reference_sigv-create-signed-request.html
    header_block, signed_headers = canonical_headers(headers)

    request = "\n".join(
        [
            method.upper(),
            path or "/",
            query_string,
            header_block,
            signed_headers,
            payload_hash,
        ]
    )

    return request, signed_headers
