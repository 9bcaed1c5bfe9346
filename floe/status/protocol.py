import json

from pydantic import BaseModel

# Coordinator RPCs are gRPC unary calls carrying raw JSON payloads.
SERVICE_NAME = "floe.Coordinator"
REQUEST_RUNNING_JOBS_METHOD = "RequestRunningJobs"
REQUEST_RUNNING_JOBS = f"/{SERVICE_NAME}/{REQUEST_RUNNING_JOBS_METHOD}"


def encode_message(message: BaseModel) -> bytes:
    return message.model_dump_json().encode("utf-8")


def coordinator_target(host: str, port: int) -> str:
    return f"{host}:{port}"


def coordinator_url(host: str, port: int) -> str:
    return f"grpc://{host}:{port}"


def describe_reply(raw: bytes) -> str:
    """Best-effort name of what the coordinator sent back, for error messages."""
    try:
        decoded = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return "bytes"
    if isinstance(decoded, dict) and isinstance(decoded.get("type"), str):
        return decoded["type"]
    return type(decoded).__name__
