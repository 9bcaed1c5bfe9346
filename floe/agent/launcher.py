import json
import os
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse

import psutil

from floe.agent.config import (
    CONTAINER_TOKEN_FILE,
    CONTAINER_WORKDIR,
    ENV_LOCAL_RESOURCES,
    ENV_TOKEN_FILE,
)
from floe.agent.container_clients import ContainerClient
from floe.agent.launch_spec import ContainerLaunchSpec
from floe.logger.common import logger


def container_run_params(
    spec: ContainerLaunchSpec, token_file: Path
) -> Dict[str, object]:
    """Translate a launch spec into ``containers.run`` keyword arguments."""
    environment = dict(spec.environment)
    environment[ENV_TOKEN_FILE] = CONTAINER_TOKEN_FILE
    environment[ENV_LOCAL_RESOURCES] = json.dumps(
        [r.model_dump(mode="json") for r in spec.resources]
    )

    volumes: Dict[str, Dict[str, str]] = {
        str(token_file): {"bind": CONTAINER_TOKEN_FILE, "mode": "ro"}
    }
    for resource in spec.resources:
        parsed = urlparse(resource.resource)
        if parsed.scheme != "file":
            continue
        name = os.path.basename(parsed.path)
        volumes[parsed.path] = {"bind": f"{CONTAINER_WORKDIR}/{name}", "mode": "ro"}

    return {
        "environment": environment,
        "volumes": volumes,
        "working_dir": CONTAINER_WORKDIR,
        "mem_limit": f"{spec.memory_budget_mb}m",
    }


def write_token_file(path: Path, blob: bytes) -> None:
    """Write ``blob`` to ``path`` readable by the owner only, from the first byte."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    # O_CREAT mode does not apply to a file left by an earlier launch
    os.fchmod(fd, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(blob)


def launch(
    client: ContainerClient,
    image: str,
    spec: ContainerLaunchSpec,
    name: str,
    tokens_dir: Path,
    command: Optional[List[str]] = None,
) -> str:
    """
    Start ``image`` as a container described by ``spec``. The credential blob
    is written under ``tokens_dir`` and mounted read-only into the container.
    """
    host_mem_mb = int(psutil.virtual_memory().total / (1024 * 1024))
    if spec.memory_budget_mb > host_mem_mb:
        logger.warning(
            f"Memory budget {spec.memory_budget_mb}MB exceeds host memory {host_mem_mb}MB"
        )

    tokens_dir.mkdir(parents=True, exist_ok=True)
    token_file = tokens_dir / f"{name}.tokens"
    write_token_file(token_file, spec.credentials)

    run_params = container_run_params(spec, token_file)
    if command:
        run_params["command"] = command

    cid = client.run_container(image, name=name, **run_params)
    if not cid:
        raise RuntimeError("Container id is None after creation")
    logger.info(
        f"Container {cid} started with name {name} "
        f"(memory={spec.memory_budget_mb}MB heap={spec.heap_limit_mb}MB)"
    )
    return cid
