from __future__ import annotations

import socket
from typing import Iterator

import pytest

from floe.testing.mock_coordinator import MockCoordinator, serve


@pytest.fixture
def coordinator() -> MockCoordinator:
    return MockCoordinator()


@pytest.fixture
def coordinator_port(coordinator: MockCoordinator) -> Iterator[int]:
    server, port = serve(coordinator, "127.0.0.1:0")
    try:
        yield port
    finally:
        coordinator.release()
        server.stop(grace=None)


@pytest.fixture
def unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
