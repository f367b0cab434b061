import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.routers import files as files_router
from app.core.config import Settings, get_settings
from app.core.errors import AppError, StoreError
from app.core.logging_setup import setup_logging
from app.schemas import ErrorEnvelope
from app.services.storage import ObjectStore, S3ObjectStore
from app.services.uploads import UploadService

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorEnvelope(message=message).model_dump(),
    )


async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, StoreError) or exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.message)


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = "; ".join(str(err.get("msg", "")) for err in errors) or "invalid request"
    return _error_response(status.HTTP_400_BAD_REQUEST, message)


def create_app(settings: Settings | None = None, store: ObjectStore | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        object_store = store
        if object_store is None:
            object_store = S3ObjectStore(settings)
            if settings.s3_auto_create_bucket:
                await object_store.ensure_bucket()
        app.state.upload_service = UploadService(object_store, settings.allowed_mime_types)
        logger.info("Serving bucket %s", settings.s3_bucket_name)
        yield
        await object_store.drain()

    app = FastAPI(
        debug=settings.debug,
        title="Upload Gateway API",
        lifespan=lifespan,
    )
    app.state.settings = settings
    if store is not None:
        app.state.upload_service = UploadService(store, settings.allowed_mime_types)

    app.add_exception_handler(AppError, handle_app_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.include_router(files_router.router, prefix=settings.api_group)

    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


app = create_app()
