from fastapi import APIRouter, Request, Response

from floe.logger.common import logger
from floe.status.render import failure_document, render_outcome

router = APIRouter()


@router.get("/jobsInfo")
def http_jobs_info(request: Request):
    """
    Running jobs as a JSON array (200), or a plain-text error (400) when the
    coordinator times out, answers with the wrong message, or is unreachable.
    """
    client = getattr(request.app.state, "status_client", None)
    try:
        if client is None:
            raise RuntimeError("Coordinator reference is not resolved.")
        document = render_outcome(client.list_running_jobs())
    except Exception as e:
        logger.exception(f"HTTP: jobs info failed: {e}")
        document = failure_document(str(e))

    return Response(
        content=document.body,
        status_code=document.status_code,
        media_type=document.media_type,
    )
