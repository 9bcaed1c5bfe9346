from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class JobState(str, Enum):
    CREATED = "CREATED"
    RUNNING = "RUNNING"
    FAILING = "FAILING"
    FAILED = "FAILED"
    CANCELING = "CANCELING"
    CANCELED = "CANCELED"
    FINISHED = "FINISHED"
    RESTARTING = "RESTARTING"


# ─── WIRE MESSAGES ─────────────────────────────────────────────────────────────
class RequestRunningJobs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["RequestRunningJobs"] = "RequestRunningJobs"


class JobSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    job_id: str
    job_name: Optional[str] = None
    state: JobState
    state_timestamps: Dict[JobState, int] = Field(default_factory=dict)

    def status_timestamp(self, state: JobState) -> int:
        return self.state_timestamps.get(state, 0)


class RunningJobs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["RunningJobs"]
    jobs: List[JobSnapshot]


# ─── QUERY RESULTS ─────────────────────────────────────────────────────────────
class JobStatusRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: str
    job_name: Optional[str] = None
    state: JobState
    state_timestamp_ms: int

    @classmethod
    def from_snapshot(cls, snapshot: JobSnapshot) -> "JobStatusRecord":
        return cls(
            job_id=snapshot.job_id,
            job_name=snapshot.job_name,
            state=snapshot.state,
            state_timestamp_ms=snapshot.status_timestamp(snapshot.state),
        )


class Success(BaseModel):
    kind: Literal["success"] = "success"
    records: List[JobStatusRecord] = Field(default_factory=list)


class Timeout(BaseModel):
    kind: Literal["timeout"] = "timeout"
    message: str


class MalformedResponse(BaseModel):
    kind: Literal["malformed_response"] = "malformed_response"
    message: str


class Unreachable(BaseModel):
    kind: Literal["unreachable"] = "unreachable"
    message: str


StatusQueryOutcome = Annotated[
    Union[Success, Timeout, MalformedResponse, Unreachable],
    Field(discriminator="kind"),
]
