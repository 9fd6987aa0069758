from unittest.mock import patch

import os

import pytest

from s3_async.credentials import (
    ConfigurationError,
    Credentials,
    credentials_from_environ,
)


@patch.dict(
    os.environ,
    {
        "AWS_ACCESS_KEY_ID": "AKIDEXAMPLE",
        "AWS_SECRET_ACCESS_KEY": "SECRET",
        "AWS_SESSION_TOKEN": "TOKEN",
    },
)
def test_credentials_from_environ():
    credentials = credentials_from_environ()

    assert credentials == Credentials("AKIDEXAMPLE", "SECRET", "TOKEN")


def test_credentials_without_token():
    credentials = credentials_from_environ(
        {"AWS_ACCESS_KEY_ID": "AKIDEXAMPLE", "AWS_SECRET_ACCESS_KEY": "SECRET"}
    )

    assert credentials.session_token is None


def test_empty_token_is_absent():
    credentials = credentials_from_environ(
        {
            "AWS_ACCESS_KEY_ID": "AKIDEXAMPLE",
            "AWS_SECRET_ACCESS_KEY": "SECRET",
            "AWS_SESSION_TOKEN": "",
        }
    )

    assert credentials.session_token is None


@pytest.mark.parametrize(
    "env",
    [
        {},
        {"AWS_ACCESS_KEY_ID": "AKIDEXAMPLE"},
        {"AWS_SECRET_ACCESS_KEY": "SECRET"},
    ],
)
def test_missing_credentials(env):
    with pytest.raises(ConfigurationError, match="Could not determine credentials"):
        credentials_from_environ(env)


def test_repr_hides_secret():
    credentials = Credentials("AKIDEXAMPLE", "SECRET", "TOKEN")

    assert "SECRET" not in repr(credentials)
    assert "TOKEN" not in repr(credentials)
    assert "AKIDEXAMPLE" in repr(credentials)
