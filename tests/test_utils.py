import pytest

from rxstream.mechanism import (
    InvalidBaseURL,
    InvalidUserID,
    InvalidUserToken,
    StreamConfigError,
    StreamException,
)
from rxstream.utils import get_full_error_info, get_short_error_info, mask_secret


def test_get_short_error_info():
    e = ValueError("oops")
    assert get_short_error_info(e) == "ValueError: oops"


def test_get_full_error_info_includes_traceback():
    try:
        raise RuntimeError("boom")
    except RuntimeError as e:
        info = get_full_error_info(e)
    assert "Traceback" in info
    assert "RuntimeError: boom" in info


@pytest.mark.parametrize(
    "value, keep, expected",
    [
        ("abcdef", 2, "ab****"),
        ("abcdef", 0, "******"),
        ("ab", 2, "**"),
        ("", 2, ""),
    ],
)
def test_mask_secret(value, keep, expected):
    assert mask_secret(value, keep) == expected


def test_stream_exception_str():
    err = StreamException(OSError("refused"), source="WebSocketTransport", note="connect")
    assert str(err) == "<WebSocketTransport> connect: refused"
    assert isinstance(err.exception, OSError)


@pytest.mark.parametrize("cls", [InvalidBaseURL, InvalidUserID, InvalidUserToken])
def test_config_errors(cls):
    err = cls()
    assert isinstance(err, StreamConfigError)
    assert isinstance(err, ValueError)
    assert "must not be empty" in str(err)
