import logging
from os import environ
from typing import Mapping, Optional

import msgspec

logger = logging.getLogger("s3io")


class ConfigurationError(Exception):
    pass


class Credentials(msgspec.Struct, frozen=True):
    access_key: str
    secret_key: str
    session_token: Optional[str] = None

    def __repr__(self) -> str:
        # Never render the secret or the token
        return f"Credentials(access_key={self.access_key!r})"


def credentials_from_environ(
    env: Optional[Mapping[str, str]] = None,
) -> Credentials:
    """
    Read credentials from ``AWS_ACCESS_KEY_ID``, ``AWS_SECRET_ACCESS_KEY`` and
    the optional ``AWS_SESSION_TOKEN``.

    :param env: Mapping to read from, defaults to ``os.environ``.
    :type env: Optional[Mapping[str, str]]
    :return: The credentials found.
    :rtype: Credentials
    :raises ConfigurationError: If the access key or secret key is missing.
    """
    if env is None:
        env = environ

    access_key = env.get("AWS_ACCESS_KEY_ID")
    secret_key = env.get("AWS_SECRET_ACCESS_KEY")

    if not access_key or not secret_key:
        raise ConfigurationError("Could not determine credentials")

    logger.debug("Using env AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY")
    return Credentials(
        access_key=access_key,
        secret_key=secret_key,
        session_token=env.get("AWS_SESSION_TOKEN") or None,
    )
