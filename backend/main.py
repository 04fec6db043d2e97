import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from database import ConnectionSupervisor, ensure_indexes

from .config import Settings, get_settings
from .errors import register_error_handlers
from .guard import describe_store
from .routers import attendance, auth, dashboard, fees, homework, reports, results, updates

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_supervisor(settings: Settings) -> ConnectionSupervisor:
    return ConnectionSupervisor(
        settings.mongo_uri,
        settings.database_name,
        retry_increment=settings.retry_increment,
        wait_timeout=settings.wait_timeout,
        reconnect_delay=settings.reconnect_delay,
    )


def _prepare_indexes(supervisor: ConnectionSupervisor) -> None:
    ensure_indexes(supervisor.database)


def create_app(settings: Optional[Settings] = None,
               supervisor: Optional[ConnectionSupervisor] = None) -> FastAPI:
    settings = settings or get_settings()
    supervisor = supervisor or build_supervisor(settings)
    supervisor.on("connected", lambda: _prepare_indexes(supervisor))
    supervisor.on("reconnected", lambda: _prepare_indexes(supervisor))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        connected = await run_in_threadpool(supervisor.connect, settings.connect_retries)
        if not connected:
            logger.warning("Database not connected - running in limited mode")
        yield
        supervisor.close()

    app = FastAPI(title="School Management API", lifespan=lifespan)
    app.state.settings = settings
    app.state.supervisor = supervisor
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.get("/")
    def root():
        return {
            "message": "School Management API running",
            "version": "1.0.0",
            "endpoints": {
                "auth": "/auth",
                "attendance": "/api/attendance",
                "homework": "/api/homework",
                "fees": "/api/fees",
                "results": "/api/results",
                "reports": "/api/reports",
                "updates": "/api/updates",
                "protected": "/api",
                "health": "/health",
            },
        }

    @app.get("/health")
    def health(request: Request):
        diagnostic = describe_store(request.app.state.supervisor)
        return {
            "status": "OK",
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
            "database": diagnostic["connectionState"],
            "diagnostic": diagnostic,
            "environment": settings.environment,
        }

    for module in (auth, fees, results, reports, updates, homework, attendance, dashboard):
        app.include_router(module.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
