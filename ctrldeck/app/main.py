from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Callable

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ctrldeck.app.core.config import settings
from ctrldeck.app.routers import actions, system, ws
from ctrldeck.app.services.container import Services, build_services

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

ServicesFactory = Callable[[], Services]


def create_app(services_factory: ServicesFactory | None = None) -> FastAPI:
    factory = services_factory or build_services

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build the services, start sampling, and tear both down on shutdown."""
        services = factory()
        app.state.services = services
        await services.start()
        logger.info("%s %s ready", settings.app_name, settings.version)
        try:
            yield
        finally:
            await services.stop()

    application = FastAPI(title=settings.app_name, version=settings.version, debug=settings.debug, lifespan=lifespan)

    allow_origins = settings.cors_allow_origins or ["*"]
    application.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(system.router)
    application.include_router(actions.router)
    application.include_router(ws.router)

    @application.get("/healthz", tags=["meta"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @application.get("/version", tags=["meta"])
    async def version() -> dict[str, str]:
        return {"version": settings.version}

    return application


app = create_app()


def run() -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    logger.info("Listening on %s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
