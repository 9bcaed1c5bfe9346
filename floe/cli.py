#!/usr/bin/env python3
import json
import os
import subprocess
import sys
import tempfile
import uuid
from pathlib import Path
from typing import List, Optional

import httpx
import typer

from floe.agent.config import HEAP_CUTOFF_RATIO, HEAP_LIMIT_CAP
from floe.agent.container_clients import get_container_client
from floe.agent.credentials import S3TokenService, current_user_tokens
from floe.agent.filesystems import filesystem_for
from floe.agent.heap import compute_heap_limit
from floe.agent.launch_spec import assemble_launch_spec
from floe.agent.launcher import launch as launch_container
from floe.agent.resources import ResourceProvisioner

app = typer.Typer(
    help="floe: provision dataflow containers and query running jobs. Use --help on any command for details.",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.command("status-server")
def status_server(
    coordinator: str = typer.Option(
        ...,
        "--coordinator",
        "-c",
        help="[required] Coordinator address, e.g. localhost:6123",
    ),
    port: int = typer.Option(8081, help="[optional] HTTP port for the status server"),
    timeout: str = typer.Option(
        "100 s", help="[optional] Coordinator request timeout, e.g. '10 s'"
    ),
):
    """
    Run the job status HTTP server.

    Example:
        floe status-server --coordinator localhost:6123 --port 8081
    """
    host, _, coordinator_port = coordinator.rpartition(":")
    env = os.environ.copy()
    env["FLOE_STATUS_HTTP"] = f"http://0.0.0.0:{port}"
    env["FLOE_COORDINATOR_HOST"] = host or coordinator
    if host:
        env["FLOE_COORDINATOR_PORT"] = coordinator_port
    env["FLOE_ASK_TIMEOUT"] = timeout
    subprocess.run([sys.executable, "-m", "floe.status.server"], env=env)


@app.command("mock-coordinator")
def mock_coordinator(
    port: int = typer.Option(6123, help="[optional] gRPC port to listen on"),
    jobs_file: Optional[str] = typer.Option(
        None, "--jobs", help="[optional] JSON file with job snapshots"
    ),
    delay: float = typer.Option(0.0, help="[optional] Seconds to hold each answer"),
):
    """
    Run a mock coordinator for local development.

    Example:
        floe mock-coordinator --port 6123 --delay 2
    """
    cmd = [
        sys.executable,
        "-m",
        "floe.testing.mock_coordinator",
        "--listen",
        f"0.0.0.0:{port}",
        "--delay",
        str(delay),
    ]
    if jobs_file:
        cmd += ["--jobs", jobs_file]
    subprocess.run(cmd)


@app.command()
def jobs(
    server: str = typer.Option(
        ...,
        "--server",
        "-s",
        help="[required] Status server HTTP address, e.g. http://localhost:8081",
    ),
):
    """
    List running jobs.

    Example:
        floe jobs --server http://localhost:8081
    """
    url = f"{server.rstrip('/')}/jobsInfo"
    try:
        with httpx.Client(timeout=None) as client:
            resp = client.get(url)
            resp.raise_for_status()
            try:
                data = resp.json()
                print(json.dumps(data, indent=2))
            except json.JSONDecodeError:
                print(resp.text)
    except httpx.HTTPStatusError as e:
        typer.secho(
            f"Error listing jobs: {e.response.text}", err=True, fg=typer.colors.RED
        )
        raise typer.Exit(1)
    except Exception as e:
        typer.secho(f"Error listing jobs: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)


@app.command()
def heap(
    memory: int = typer.Argument(..., help="[required] Container memory budget in MB"),
    ratio: float = typer.Option(HEAP_CUTOFF_RATIO, help="[optional] Heap cutoff ratio"),
    cap: int = typer.Option(HEAP_LIMIT_CAP, help="[optional] Heap limit cap in MB"),
):
    """
    Print the heap limit for a container memory budget.

    Example:
        floe heap 4096
    """
    print(compute_heap_limit(memory, ratio, cap))


@app.command()
def provision(
    local_path: Path = typer.Argument(..., help="[required] Local artifact to stage"),
    app_id: str = typer.Argument(..., help="[required] Application id"),
    dest: Optional[str] = typer.Option(
        None, "--dest", "-d", help="[optional] Staging root, e.g. s3://bucket/floe (default: home)"
    ),
):
    """
    Stage an artifact in cluster storage and print its resource descriptor.

    Example:
        floe provision ./job.jar application_0001 --dest s3://my-bucket
    """
    try:
        fs = filesystem_for(dest or str(local_path.absolute()))
        descriptor = ResourceProvisioner(fs).provision(local_path, app_id, dest)
    except Exception as e:
        typer.secho(f"Error provisioning {local_path}: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)
    print(json.dumps(descriptor.model_dump(mode="json"), indent=2))


@app.command()
def launch(
    image: str = typer.Argument(..., help="[required] Container image to run"),
    memory: int = typer.Option(..., "--memory", "-m", help="[required] Memory budget in MB"),
    artifact: List[Path] = typer.Option(
        [], "--artifact", "-a", help="[optional] Local artifact to stage (repeatable)"
    ),
    app_id: Optional[str] = typer.Option(None, help="[optional] Application id (default: random)"),
    dest: Optional[str] = typer.Option(
        None, "--dest", "-d", help="[optional] Staging root (default: home)"
    ),
    wait: bool = typer.Option(False, help="[optional] Wait for the container to exit"),
    command: Optional[List[str]] = typer.Argument(None, help="[optional] Container command"),
):
    """
    Assemble a launch spec and start it as a local container.

    Example:
        floe launch flink:1.0 -m 2048 -a ./job.jar -- jobmanager
    """
    app_id = app_id or f"application_{uuid.uuid4().hex[:12]}"
    try:
        fs = filesystem_for(dest or str(Path.cwd()))
        spec = assemble_launch_spec(
            memory_budget_mb=memory,
            app_id=app_id,
            artifacts=artifact,
            provisioner=ResourceProvisioner(fs),
            token_service=S3TokenService(),
            user_tokens=current_user_tokens(),
            destination_root=dest,
        )
        client = get_container_client()
        tokens_dir = Path(tempfile.gettempdir()) / "floe-tokens"
        cid = launch_container(
            client, image, spec, f"floe-{app_id}", tokens_dir, command=command or None
        )
    except Exception as e:
        typer.secho(f"Error launching {image}: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)

    print(f"Started container {cid} for {app_id} (heap {spec.heap_limit_mb}MB)")
    if wait:
        code = client.wait_for_exit(cid)
        if code != 0:
            logs = client.get_container_logs(cid)
            typer.secho(f"Exit {code}. Logs:\n{logs[-2000:]}", err=True, fg=typer.colors.RED)
            raise typer.Exit(code)


if __name__ == "__main__":
    app()
