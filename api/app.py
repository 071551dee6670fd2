"""
Alignzo Backend API

FastAPI application exposing the cached read paths, cache administration
and security alert administration.

Run locally:
    uvicorn api.app:app --reload
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI

from alignzo import __version__
from alignzo.context import AppContext, build_context

from . import alerts, cache, kanban, users


def configure_logging(level: str = "INFO"):
    # stdout, since the hosting platform treats stderr as errors
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        force=True,
    )
    # Quiet down chatty loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def create_app(
    context: Optional[AppContext] = None,
    context_factory: Callable[[], AppContext] = build_context,
) -> FastAPI:
    """
    Build the API app.

    The context is created at startup unless one is passed in.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = context or context_factory()
        app.state.context = ctx
        await ctx.monitoring.start_cleanup()
        logger.info("Alignzo API started")
        try:
            yield
        finally:
            await ctx.close()
            app.state.context = None

    app = FastAPI(
        title="Alignzo Backend",
        description="Cached project/work-tracking reads and security monitoring",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(cache.router)
    app.include_router(kanban.router)
    app.include_router(users.router)
    app.include_router(users.teams_router)
    app.include_router(alerts.router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app


configure_logging(os.getenv("LOG_LEVEL", "INFO"))
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
