import pytest

from s3_async.responses import (
    Bucket,
    ObjectInfo,
    S3Error,
    S3ErrorDetail,
    S3Result,
    parse_buckets,
    parse_error,
    parse_object_list,
)

BUCKETS_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<ListAllMyBucketsResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">
  <Owner><ID>owner</ID><DisplayName>me</DisplayName></Owner>
  <Buckets>
    <Bucket><Name>alpha</Name><CreationDate>2019-12-11T23:32:47+00:00</CreationDate></Bucket>
    <Bucket><Name>beta</Name><CreationDate>2020-01-01T00:00:00+00:00</CreationDate></Bucket>
  </Buckets>
</ListAllMyBucketsResult>"""

OBJECTS_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<ListBucketResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">
  <Name>alpha</Name>
  <Prefix>photos/</Prefix>
  <KeyCount>2</KeyCount>
  <MaxKeys>2</MaxKeys>
  <IsTruncated>true</IsTruncated>
  <NextContinuationToken>token-1</NextContinuationToken>
  <Contents>
    <Key>photos/a.jpg</Key>
    <LastModified>2009-10-12T17:50:30.000Z</LastModified>
    <ETag>"fba9dede5f27731c9771645a39863328"</ETag>
    <Size>434234</Size>
    <StorageClass>STANDARD</StorageClass>
  </Contents>
  <Contents>
    <Key>photos/b.jpg</Key>
    <Size>12</Size>
  </Contents>
  <CommonPrefixes><Prefix>photos/2006/</Prefix></CommonPrefixes>
</ListBucketResult>"""

SIGNATURE_ERROR_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<Error>
  <Code>SignatureDoesNotMatch</Code>
  <Message>The request signature we calculated does not match the signature you provided.</Message>
  <StringToSign>AWS4-HMAC-SHA256
20130524T000000Z</StringToSign>
  <CanonicalRequest>GET
/</CanonicalRequest>
  <RequestId>4442587FB7D0A2F9</RequestId>
</Error>"""


def test_parse_buckets():
    assert parse_buckets(BUCKETS_XML) == [
        Bucket(name="alpha", creation_date="2019-12-11T23:32:47+00:00"),
        Bucket(name="beta", creation_date="2020-01-01T00:00:00+00:00"),
    ]


def test_parse_buckets_empty():
    body = b"<ListAllMyBucketsResult><Buckets/></ListAllMyBucketsResult>"

    assert parse_buckets(body) == []


def test_parse_object_list():
    listing = parse_object_list(OBJECTS_XML)

    assert listing.bucket == "alpha"
    assert listing.prefix == "photos/"
    assert listing.is_truncated is True
    assert listing.next_continuation_token == "token-1"
    assert listing.key_count == 2
    assert listing.common_prefixes == ["photos/2006/"]
    assert listing.contents[0] == ObjectInfo(
        key="photos/a.jpg",
        size=434234,
        etag='"fba9dede5f27731c9771645a39863328"',
        last_modified="2009-10-12T17:50:30.000Z",
        storage_class="STANDARD",
    )
    assert listing.contents[1] == ObjectInfo(key="photos/b.jpg", size=12)


def test_parse_error_with_key():
    detail = parse_error(
        b"<Error><Code>NoSuchKey</Code><Message>The resource you requested does "
        b"not exist</Message><Key>missing.txt</Key><RequestId>ID</RequestId></Error>",
        404,
    )

    assert detail == S3ErrorDetail(
        code="NoSuchKey",
        message="The resource you requested does not exist",
        key="missing.txt",
        request_id="ID",
    )


def test_parse_error_signature_mismatch():
    detail = parse_error(SIGNATURE_ERROR_XML, 403)

    assert detail.code == "SignatureDoesNotMatch"
    assert detail.canonical_request == "GET\n/"
    assert detail.string_to_sign == "AWS4-HMAC-SHA256\n20130524T000000Z"


@pytest.mark.parametrize(
    "body, status, code, message",
    [
        (b"", 404, "NotFound", ""),
        (b"Bad Gateway", 502, "HTTP502", "Bad Gateway"),
        (b"<html>nope</html>", 403, "AccessDenied", "<html>nope</html>"),
    ],
)
def test_parse_error_without_error_document(body, status, code, message):
    detail = parse_error(body, status)

    assert detail.code == code
    assert detail.message == message


def test_result_unwrap():
    assert S3Result(status=200, value=b"data").unwrap() == b"data"

    detail = S3ErrorDetail(code="NoSuchKey", message="missing", key="a.txt")
    result = S3Result(status=404, error=detail, canonical_request="GET\n/a.txt")

    assert not result.ok
    with pytest.raises(S3Error, match="NoSuchKey") as excinfo:
        result.unwrap()

    assert excinfo.value.detail == detail
    assert excinfo.value.status == 404
    assert excinfo.value.canonical_request == "GET\n/a.txt"
    assert "(key: a.txt)" in str(excinfo.value)


def test_describe_signature_mismatch():
    result = S3Result(
        status=403,
        error=parse_error(SIGNATURE_ERROR_XML, 403),
        canonical_request="GET\n/local",
    )

    report = result.describe()

    assert "SignatureDoesNotMatch" in report
    assert "Local canonical request:\nGET\n/local" in report
    assert "Service canonical request:\nGET\n/" in report


def test_describe_other_error_omits_canonical_request():
    result = S3Result(
        status=404,
        error=S3ErrorDetail(code="NoSuchKey"),
        canonical_request="GET\n/local",
    )

    assert "canonical request" not in result.describe()
    assert S3Result(status=204).describe() == "OK (204)"
