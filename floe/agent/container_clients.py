import os
import subprocess
from typing import Iterable, Optional, Protocol, Union

import docker
from podman import PodmanClient

from floe.agent.config import PODMAN_SOCK
from floe.logger.common import logger


class ContainerClient(Protocol):
    runtime: str

    def run_container(self, image: str, name: str, **run_params) -> Optional[str]:
        """Start ``image`` detached; returns the container id."""
        ...

    def get_container_logs(self, container_id: str) -> str:
        ...

    def wait_for_exit(self, container_id: str) -> int:
        """Block until the container exits; returns its exit code."""
        ...


def _decode_logs(output: Union[bytes, Iterable[bytes]]) -> str:
    if not isinstance(output, bytes):
        output = b"".join(output)
    return output.decode("utf-8", errors="replace")


class DockerContainerClient(ContainerClient):
    """
    Runs launch specs through the Docker SDK. podman-py mirrors the same
    ``containers`` API, so :class:`PodmanContainerClient` only overrides the
    places where the two differ.
    """

    runtime = "docker"

    def __init__(self, client):
        self.client = client

    def run_container(self, image: str, name: str, **run_params) -> Optional[str]:
        logger.debug(f"{self.runtime} run {image} as {name}: {sorted(run_params)}")
        container = self.client.containers.run(image, detach=True, name=name, **run_params)
        return self._container_id(container)

    def _container_id(self, container) -> Optional[str]:
        return container.id

    def get_container_logs(self, container_id: str) -> str:
        return _decode_logs(self.client.containers.get(container_id).logs())

    def wait_for_exit(self, container_id: str) -> int:
        result = self.client.containers.get(container_id).wait()
        if isinstance(result, dict):
            return result.get("StatusCode", 1)
        return int(result)


class PodmanContainerClient(DockerContainerClient):
    runtime = "podman"

    def _container_id(self, container) -> Optional[str]:
        # object, list of objects, or an iterator of ids
        if hasattr(container, "id"):
            return container.id
        if isinstance(container, (list, tuple)):
            return container[0].id
        if hasattr(container, "__iter__"):
            first = next(iter(container))
            return getattr(first, "id", first)
        raise RuntimeError("Unknown container return type from Podman run")


def _podman_socket_path(podman_sock: str) -> str:
    if podman_sock.startswith("unix://"):
        return podman_sock[len("unix://") :]
    return podman_sock


def get_container_client(podman_sock: str = PODMAN_SOCK) -> ContainerClient:
    """Docker if reachable, otherwise Podman on ``podman_sock``."""
    try:
        client = docker.from_env()
        client.ping()
        logger.info("Using Docker as container backend.")
        return DockerContainerClient(client)
    except Exception as e:
        logger.warning(f"Docker not available: {e}")

    try:
        subprocess.run(
            ["podman", "info"],
            check=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise RuntimeError(f"No container backend (docker or podman) available: {e}") from e

    sock_path = _podman_socket_path(podman_sock)
    if not os.path.exists(sock_path):
        raise RuntimeError(
            f"Podman socket not found at {podman_sock}. Set PODMAN_SOCK to the podman API socket."
        )

    client = PodmanClient(base_url=podman_sock)
    client.ping()
    logger.info("Using Podman as container backend.")
    return PodmanContainerClient(client)
