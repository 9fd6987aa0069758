from .client import S3AsyncClient
from .credentials import ConfigurationError, Credentials
from .responses import (
    Bucket,
    ObjectInfo,
    ObjectList,
    S3Error,
    S3ErrorDetail,
    S3Result,
)
from .signer import sign_request

__version__ = "0.1.0"
__all__ = [
    "S3AsyncClient",
    "ConfigurationError",
    "Credentials",
    "Bucket",
    "ObjectInfo",
    "ObjectList",
    "S3Error",
    "S3ErrorDetail",
    "S3Result",
    "sign_request",
]
