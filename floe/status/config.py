import os
import re
from typing import Tuple
from urllib.parse import urlparse

DEFAULT_COORDINATOR_PORT = 6123
DEFAULT_STATUS_HOST = "0.0.0.0"
DEFAULT_STATUS_PORT = 8081

_DURATION_UNITS = {
    "ms": 0.001,
    "millis": 0.001,
    "milliseconds": 0.001,
    "s": 1.0,
    "sec": 1.0,
    "seconds": 1.0,
    "min": 60.0,
    "minutes": 60.0,
}


def parse_duration(value: str) -> float:
    """Parse ``"100 s"``, ``"500ms"``, ``"2 min"`` or a bare number of seconds."""
    match = re.fullmatch(r"\s*(\d+(?:\.\d+)?)\s*([a-z]*)\s*", value.lower())
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    if unit not in _DURATION_UNITS and unit != "":
        raise ValueError(f"Unknown duration unit {unit!r} in {value!r}")
    return float(amount) * _DURATION_UNITS.get(unit, 1.0)


def parse_bind_address(url: str) -> Tuple[str, int]:
    """Host and port to serve on from ``http://host[:port][/path]``."""
    parsed = urlparse(url if "//" in url else f"//{url}")
    return parsed.hostname or DEFAULT_STATUS_HOST, parsed.port or DEFAULT_STATUS_PORT


COORDINATOR_HOST = os.getenv("FLOE_COORDINATOR_HOST", None)
COORDINATOR_PORT = int(
    os.getenv("FLOE_COORDINATOR_PORT", str(DEFAULT_COORDINATOR_PORT))
)
ASK_TIMEOUT = parse_duration(os.getenv("FLOE_ASK_TIMEOUT", "100 s"))
STATUS_HTTP = os.getenv("FLOE_STATUS_HTTP", "http://0.0.0.0:8081")

MAX_MESSAGE_SIZE = 64 * 1024 * 1024  # 64MB
