import logging
import os
import uuid
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from rich.console import Console
from starlette.exceptions import HTTPException as StarletteHTTPException

from tubegate.api import download, downloader, health, search
from tubegate.config.settings import Config, config as default_config
from tubegate.core.logging import setup_logging
from tubegate.i18n import i18n
from tubegate.infra.redis import close_redis, init_redis
from tubegate.services.media import MediaService
from tubegate.services.normalizer import ResponseShape, error_body
from tubegate.services.storage import Sweeper

logger = logging.getLogger(__name__)
console = Console()


def create_app(config: Optional[Config] = None, media: Optional[MediaService] = None) -> FastAPI:
    config = config or default_config
    media = media or MediaService.from_config(config)

    app = FastAPI(
        title=config.api.title,
        version=config.api.version,
        docs_url="/docs" if config.api.debug else None,
        redoc_url=None
    )
    app.state.config = config
    app.state.media = media
    app.state.sweeper = None

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request.state.request_id = uuid.uuid4().hex[:12]
        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            error_body(exc.status_code, str(exc.detail), ResponseShape.FLAT, config.creator),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            error_body(400, str(exc.errors()[0].get("msg", exc)), ResponseShape.FLAT, config.creator),
            status_code=400
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("API Error: %s", exc)
        return JSONResponse(
            error_body(500, i18n.get("error.internal"), ResponseShape.FLAT, config.creator),
            status_code=500
        )

    # Routes
    app.include_router(health.router, tags=["Health"])
    app.include_router(downloader.router, tags=["Downloader"])
    app.include_router(download.router, tags=["Download"])
    app.include_router(search.router, tags=["Search"])

    if not config.server.serverless:
        app.mount("/downloads", StaticFiles(directory=config.storage.download_dir, check_dir=False), name="downloads")

    # Mounted last so API routes win
    if os.path.isdir(config.storage.static_dir):
        app.mount("/", StaticFiles(directory=config.storage.static_dir), name="public")

    @app.on_event("startup")
    async def startup_event():
        setup_logging(config.logging)
        media.store.ensure_dirs()

        cookie_status = media.cookies.describe()
        if cookie_status == "ready":
            console.print(f"[green]✓ Cookies file found ({media.cookies.path}), will be used for authentication[/green]")
        elif cookie_status == "empty":
            console.print("[yellow]⚠ Cookies file is empty, some videos may not be accessible[/yellow]")
        elif not config.server.serverless:
            console.print("[yellow]⚠ No cookies.txt found, some videos may not be accessible[/yellow]")

        if not config.server.serverless:
            media.store.sweep()
            app.state.sweeper = Sweeper(media.store, config.storage.sweep_interval_seconds)
            app.state.sweeper.start()

        await init_redis(config.redis)

        console.print(f"[bold]{config.api.title}[/bold] base URL {config.server.public_base_url}")
        console.print(f"[dim]Downloads directory: {media.store.download_dir}[/dim]")

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.sweeper:
            await app.state.sweeper.stop()
        media.store.sweep()
        media.store.shutdown()
        await media.tunnel.aclose()
        await close_redis()

    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=default_config.server.port)


if __name__ == "__main__":
    run()
