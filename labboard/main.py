"""FastAPI application entry point."""

import logging

from fastapi import FastAPI

from labboard import __version__
from labboard.board import router as board_router
from labboard.config import get_settings
from labboard.imports import router as imports_router


def configure_logging() -> None:
    """Set up root logging from settings."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging()

    app = FastAPI(title=settings.app_name, version=__version__)
    app.include_router(board_router, prefix="/api/boards", tags=["boards"])
    app.include_router(imports_router, prefix="/api/imports", tags=["imports"])

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
