from typing import Iterable

from pydantic import BaseModel

from floe.status.models import JobStatusRecord, StatusQueryOutcome, Success

HTTP_OK = 200
HTTP_BAD_REQUEST = 400

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "/": "\\/",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "<br>",  # HTML line break
    "\f": "\\f",
    "\r": "\\r",
}


class StatusDocument(BaseModel):
    status_code: int
    body: str
    media_type: str


def escape_string(value: str) -> str:
    out = []
    for c in value:
        if c in _ESCAPES:
            out.append(_ESCAPES[c])
        elif c < " ":
            continue  # unreadable, dropped
        else:
            out.append(c)
    return "".join(out)


def render_job(record: JobStatusRecord) -> str:
    fields = [f'"jobid": "{escape_string(record.job_id)}"']
    if record.job_name is not None:
        fields.append(f'"jobname": "{escape_string(record.job_name)}"')
    fields.append(f'"status": "{escape_string(record.state.value)}"')
    fields.append(f'"time": {record.state_timestamp_ms}')
    return "{" + ", ".join(fields) + "}"


def render_jobs(records: Iterable[JobStatusRecord]) -> str:
    return "[" + ", ".join(render_job(r) for r in records) + "]"


def failure_document(message: str) -> StatusDocument:
    return StatusDocument(
        status_code=HTTP_BAD_REQUEST, body=message, media_type="text/plain"
    )


def render_outcome(outcome: StatusQueryOutcome) -> StatusDocument:
    if isinstance(outcome, Success):
        return StatusDocument(
            status_code=HTTP_OK,
            body=render_jobs(outcome.records),
            media_type="application/json",
        )
    return failure_document(outcome.message)
