import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sharelink import schemas
from sharelink.api.api_v1.api import api_router
from sharelink.core.config import Settings, settings
from sharelink.core.errors import ShareLinkError
from sharelink.crud.crud_share import ShareStore, utcnow
from sharelink.services.download_gate import DownloadGate
from sharelink.services.sweeper import ExpirySweeper
from sharelink.utils.file_manager import FileManager

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(app_settings: Optional[Settings] = None, clock: Callable[[], datetime] = utcnow) -> FastAPI:
    app_settings = app_settings or settings

    file_manager = FileManager(app_settings.UPLOAD_DIR, max_file_size=app_settings.MAX_FILE_SIZE)
    store = ShareStore.from_settings(app_settings, file_manager, clock=clock)
    gate = DownloadGate(store)
    sweeper = ExpirySweeper(
        store,
        interval_seconds=app_settings.CLEANUP_INTERVAL_SECONDS,
        cleanup_grace_seconds=app_settings.DEFERRED_CLEANUP_GRACE_SECONDS,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        file_manager.ensure_upload_dir()
        sweeper.start()
        logger.info("Registered Routes:")
        for route in app.routes:
            if hasattr(route, "path"):
                logger.info("  %s", route.path)
        yield
        await sweeper.stop()

    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        openapi_url=f"{app_settings.API_STR}/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.file_manager = file_manager
    app.state.store = store
    app.state.gate = gate
    app.state.sweeper = sweeper

    # Set all CORS enabled origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=app_settings.API_STR)

    @app.get("/")
    def read_root():
        return {"message": f"Welcome to {app_settings.PROJECT_NAME} API"}

    @app.get(f"{app_settings.API_STR}/health", response_model=schemas.Health)
    def health():
        return schemas.Health(
            message=f"{app_settings.PROJECT_NAME} Backend is running",
            timestamp=datetime.now(timezone.utc).isoformat(),
            shares=len(store),
            uploads=file_manager.uploads_stats(),
        )

    @app.exception_handler(ShareLinkError)
    async def share_link_exception_handler(request: Request, exc: ShareLinkError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info("Validation Error: %s", exc)
        return JSONResponse(
            status_code=422,
            content={"error": "Validation Error", "code": "VALIDATION_ERROR", "detail": jsonable_encoder(exc.errors())},
        )

    # Global Exception Handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "code": "SERVER_ERROR"},
        )

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
