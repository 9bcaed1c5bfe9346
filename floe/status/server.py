import sys
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI

from floe.logger.common import LOG_LEVEL, logger, uvicorn_log_config
from floe.status.client import ClusterStatusClient
from floe.status.config import COORDINATOR_HOST, STATUS_HTTP, parse_bind_address
from floe.status.jobs__handler import router as jobs_router


def create_app(
    status_client_factory: Callable[[], ClusterStatusClient] = ClusterStatusClient,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Resolution failure propagates and aborts server startup
        app.state.status_client = status_client_factory()
        try:
            yield
        finally:
            logger.info("Shutting down coordinator client")
            app.state.status_client.close()

    app = FastAPI(lifespan=lifespan)
    app.include_router(jobs_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    if not COORDINATOR_HOST:
        logger.error(
            "FLOE_COORDINATOR_HOST environment variable is not set. Please set it to the host of the coordinator."
        )
        sys.exit(1)

    host, port = parse_bind_address(STATUS_HTTP)
    logger.info(f"Starting HTTP server on {host}:{port}")

    uvicorn.run(app, host=host, port=port, log_level=LOG_LEVEL.lower(), log_config=uvicorn_log_config())
