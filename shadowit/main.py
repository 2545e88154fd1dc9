import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shadowit.api.v1 import api_v1_router
from shadowit.core.error_handlers import register_exception_handlers
from shadowit.core.lifespan import lifespan
from shadowit.core.settings import settings
from shadowit.database import db_connection
from shadowit.workflow.job_queue import sync_job_queue


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    register_exception_handlers(application)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(api_v1_router)
    application.add_api_route("/health", health_check, methods=["GET"])
    return application


async def health_check() -> dict[str, str | int]:
    # the queue lives in process, so a lost database still leaves stages to drain
    return {
        "status": "healthy" if db_connection.is_connected() else "degraded",
        "pending_stages": sync_job_queue.pending,
    }


app = create_app()


def run() -> None:
    uvicorn.run(
        "shadowit.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
        log_config=None,
    )


if __name__ == "__main__":
    run()
