############################################################
#
# bloghut - Community Blogging Platform
#
# main.py: FastAPI application entry point and configuration
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""FastAPI application entry point."""

import os
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.app.api import api_router
from backend.app.dashboard.common import render
from backend.app.dashboard.routes import dashboard_router
from backend.app.db.session import init_db
from backend.app.logging_config import (
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)
from backend.app.security.sessions import SessionMiddleware
from backend.app.settings import get_settings
from backend.app.storage.uploads import get_image_storage

# Setup logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan manager."""
    logger.info("Starting Blog Hut...")

    await init_db()

    # Initialize storage
    storage = get_image_storage()
    await storage.initialize()

    logger.info("Blog Hut started successfully")

    yield

    logger.info("Blog Hut shutdown complete")


class RequestIDMiddleware:
    """Raw ASGI middleware for request ID injection.

    Unlike @app.middleware("http") which wraps in BaseHTTPMiddleware,
    this does NOT run the handler in a separate task, so client disconnects
    won't cancel in-flight DB operations and leak connections.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = headers.get(b"x-request-id", b"").decode() or str(uuid.uuid4())

        bind_request_context(request_id=request_id, path=scope.get("path"))

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                response_headers = list(message.get("headers", []))
                response_headers.append((b"x-request-id", request_id.encode()))
                message = {**message, "headers": response_headers}
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            clear_request_context()


def _wants_json(request: Request) -> bool:
    return request.url.path.startswith("/api/")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Community blogging platform",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )

    # Session cookie handling sits inside the request ID context
    app.add_middleware(SessionMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Exception handlers
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if _wants_json(request):
            return JSONResponse(
                status_code=exc.status_code,
                content={"success": False, "message": str(exc.detail)},
            )
        title = "Page not found" if exc.status_code == 404 else "Request failed"
        return render(
            request,
            "error.html",
            {"status_code": exc.status_code, "title": title, "message": str(exc.detail)},
            status_code=exc.status_code,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.exception("unhandled_exception", error=str(exc))
        if _wants_json(request):
            return JSONResponse(
                status_code=500,
                content={"success": False, "message": "An error occurred"},
            )
        return render(
            request,
            "error.html",
            {
                "status_code": 500,
                "title": "Something went wrong",
                "message": "An error occurred. Please try again.",
            },
            status_code=500,
        )

    # Include routers
    app.include_router(api_router)
    app.include_router(dashboard_router)

    # Mount static files for dashboard
    static_path = os.path.join(os.path.dirname(__file__), "dashboard", "static")
    if os.path.exists(static_path):
        app.mount("/static", StaticFiles(directory=static_path), name="static")

    # Uploaded images; the directory is created at startup
    app.mount(
        "/uploads",
        StaticFiles(directory=settings.upload_root, check_dir=False),
        name="uploads",
    )

    return app


# Create application instance
app = create_app()


def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "backend.app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
