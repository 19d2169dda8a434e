"""MiniDrive FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from minidrive import __version__
from minidrive.config import Settings, settings as default_settings
from minidrive.database import IdentityDatabase
from minidrive.exceptions import MiniDriveError
from minidrive.services import Services, build_services
from minidrive.services.identity_service import IdentityService

logger = logging.getLogger(__name__)


def _setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for noisy in ("aiosqlite", "urllib3", "multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _upload_limit(path: str, settings: Settings) -> Optional[int]:
    prefix = settings.api_prefix
    if path == f"{prefix}/upload-folder":
        return settings.max_folder_upload_bytes
    if path in (f"{prefix}/upload", f"{prefix}/upload-multiple"):
        return settings.max_upload_bytes
    return None


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Application factory; the signing secret, store client and identity DB are fixed here."""
    from minidrive.api.routes import api_router

    settings = settings or default_settings

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        # === STARTUP ===
        _setup_logging(settings)
        Path(settings.data_dir).mkdir(parents=True, exist_ok=True)

        database: IdentityDatabase = app.state.database
        await database.create_tables()
        if settings.is_dev_mode:
            async with database.sessionmaker() as db:
                await IdentityService(db).seed_demo_users()

        # Fail fast: without the bucket no route can work
        await run_in_threadpool(app.state.services.object_store.ensure_bucket)
        logger.info("MiniDrive v%s started, listening on %s:%s", __version__, settings.host, settings.port)

        try:
            yield
        finally:
            # === SHUTDOWN ===
            await database.dispose()
            logger.info("MiniDrive shutting down")

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        debug=settings.debug,
        lifespan=_lifespan,
    )
    app.state.settings = settings
    app.state.services = services or build_services(settings)
    app.state.database = IdentityDatabase.from_settings(settings)

    @app.middleware("http")
    async def _enforce_upload_limit(request: Request, call_next):
        """Reject oversized uploads before the multipart body is read."""
        limit = _upload_limit(request.url.path, settings)
        if limit is not None:
            try:
                length = int(request.headers.get("content-length", "0"))
            except ValueError:
                return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "Invalid Content-Length"})
            if length > limit:
                logger.info("Rejected %d-byte upload to %s (limit %d)", length, request.url.path, limit)
                return JSONResponse(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    content={"detail": f"Upload exceeds limit of {limit} bytes"},
                )
        return await call_next(request)

    # Added last so CORS headers also cover early 413 responses
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(MiniDriveError)
    async def _domain_error(request: Request, exc: MiniDriveError):
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError):
        errors = [
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        ]
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": errors})

    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()


def run(**kwargs: Any) -> None:
    import uvicorn

    uvicorn.run(
        "minidrive.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
        log_level=default_settings.log_level.lower(),
        **kwargs,
    )


if __name__ == "__main__":
    run()
