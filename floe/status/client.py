from typing import Optional

import grpc
from pydantic import ValidationError

from floe.logger.common import logger
from floe.status.config import (
    ASK_TIMEOUT,
    COORDINATOR_HOST,
    COORDINATOR_PORT,
    MAX_MESSAGE_SIZE,
)
from floe.status.models import (
    JobStatusRecord,
    MalformedResponse,
    RequestRunningJobs,
    RunningJobs,
    StatusQueryOutcome,
    Success,
    Timeout,
    Unreachable,
)
from floe.status.protocol import (
    REQUEST_RUNNING_JOBS,
    coordinator_target,
    coordinator_url,
    describe_reply,
    encode_message,
)


class CoordinatorUnavailableError(RuntimeError):
    pass


class ClusterStatusClient:
    """
    Queries a coordinator for its running jobs.

    The gRPC channel is resolved once, in the constructor, and shared by all
    queries; construction fails if the coordinator cannot be reached within
    ``timeout`` seconds. Each query is an independent call with its own
    deadline, so the client may be used from several threads at once.
    Call :meth:`close` (or use the client as a context manager) to release
    the channel.
    """

    def __init__(
        self,
        host: Optional[str] = COORDINATOR_HOST,
        port: int = COORDINATOR_PORT,
        timeout: float = ASK_TIMEOUT,
    ):
        if not host:
            raise ValueError("Coordinator host is not configured")
        self.timeout = timeout
        self.address = coordinator_url(host, port)

        self._channel = grpc.insecure_channel(
            coordinator_target(host, port),
            options=[
                ("grpc.max_send_message_length", MAX_MESSAGE_SIZE),
                ("grpc.max_receive_message_length", MAX_MESSAGE_SIZE),
            ],
        )
        try:
            grpc.channel_ready_future(self._channel).result(timeout=timeout)
        except grpc.FutureTimeoutError as e:
            self._channel.close()
            raise CoordinatorUnavailableError(
                f"Could not find coordinator at specified address {self.address}."
            ) from e
        logger.info(f"Resolved coordinator at {self.address}")

        # No response deserializer: the raw reply is validated per query
        self._request_running_jobs = self._channel.unary_unary(
            REQUEST_RUNNING_JOBS,
            request_serializer=encode_message,
            response_deserializer=None,
        )

    def list_running_jobs(self) -> StatusQueryOutcome:
        try:
            raw = self._request_running_jobs(RequestRunningJobs(), timeout=self.timeout)
        except grpc.RpcError as e:
            code = e.code() if callable(getattr(e, "code", None)) else grpc.StatusCode.UNKNOWN  # type: ignore
            if code == grpc.StatusCode.DEADLINE_EXCEEDED:
                logger.warning(
                    f"Coordinator at {self.address} did not answer within {self.timeout}s"
                )
                return Timeout(
                    message="Could not retrieve the running jobs from the coordinator: "
                    f"no response within {self.timeout} seconds."
                )
            details = e.details() if callable(getattr(e, "details", None)) else str(e)  # type: ignore
            logger.error(f"Coordinator at {self.address} unreachable: {code.name} {details}")
            return Unreachable(
                message="Could not retrieve the running jobs from the coordinator "
                f"at {self.address}: {code.name} {details}"
            )

        try:
            reply = RunningJobs.model_validate_json(raw)
        except ValidationError:
            return MalformedResponse(
                message="RequestRunningJobs requires a response of type RunningJobs. "
                f"Instead the response is of type {describe_reply(raw)}."
            )

        return Success(records=[JobStatusRecord.from_snapshot(j) for j in reply.jobs])

    def close(self) -> None:
        self._channel.close()

    def __enter__(self) -> "ClusterStatusClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
