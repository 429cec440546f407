"""FastAPI entrypoint for the win journal."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.dependencies import get_settings, shutdown_dependencies
from .api.routers import backup, health, session, stats, wins
from .infra.logging import configure_logging


@asynccontextmanager
async def _lifespan(application: FastAPI):
    yield
    shutdown_dependencies()


def create_app() -> FastAPI:
    """Instantiate the FastAPI app and register routers."""

    settings = get_settings()
    configure_logging(settings.logging)
    application = FastAPI(title="Win Journal API", version="0.1.0", lifespan=_lifespan)
    allowed_origins = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    }
    application.add_middleware(
        CORSMiddleware,
        allow_origins=list(allowed_origins),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    for router in (
        health.router,
        session.router,
        wins.router,
        stats.router,
        backup.router,
    ):
        application.include_router(router)
    return application


app = create_app()
