from __future__ import annotations

import pytest

from floe.status.config import parse_bind_address, parse_duration
from floe.status.protocol import describe_reply


@pytest.mark.parametrize(
    "raw,seconds",
    [
        ("100 s", 100.0),
        ("100s", 100.0),
        ("500 ms", 0.5),
        ("2 min", 120.0),
        ("7", 7.0),
        ("1.5 seconds", 1.5),
    ],
)
def test_parse_duration(raw: str, seconds: float) -> None:
    assert parse_duration(raw) == pytest.approx(seconds)


@pytest.mark.parametrize("raw", ["", "fast", "10 parsecs", "-1 s"])
def test_parse_duration_rejects_garbage(raw: str) -> None:
    with pytest.raises(ValueError):
        parse_duration(raw)


def test_describe_reply() -> None:
    assert describe_reply(b'{"type": "JobNotFound"}') == "JobNotFound"
    assert describe_reply(b"[1, 2]") == "list"
    assert describe_reply(b"not json") == "bytes"


@pytest.mark.parametrize(
    "url,address",
    [
        ("http://0.0.0.0:8081", ("0.0.0.0", 8081)),
        ("http://status.internal:9000/floe", ("status.internal", 9000)),
        ("http://status.internal", ("status.internal", 8081)),
        ("localhost:7000", ("localhost", 7000)),
        ("http://[::1]:8082/", ("::1", 8082)),
    ],
)
def test_parse_bind_address(url: str, address: tuple) -> None:
    assert parse_bind_address(url) == address
