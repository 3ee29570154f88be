import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from resolution_lab.application import LabService, build_lab_service, configure_lab_service
from resolution_lab.core.settings import Settings, load_settings
from resolution_lab.routes import events, history, queue


def create_app(settings: Settings | None = None, service: LabService | None = None) -> FastAPI:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )

    settings = settings or load_settings()
    if service is None:
        service = build_lab_service(settings)
    service.bootstrap()
    configure_lab_service(service)

    app = FastAPI(title="Resolution Lab API", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(queue.router, prefix="/api")
    app.include_router(history.router, prefix="/api")
    app.include_router(events.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Resolution Lab API",
                "docs": "/docs",
                "health": "/api/status",
            }
        )

    return app
