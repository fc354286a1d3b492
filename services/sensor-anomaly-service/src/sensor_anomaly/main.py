"""FastAPI app for sensor anomaly service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request

from .config import get_settings
from .db import init_db
from .errors import HTTP_ERROR_CODES, ApiError, error_response
from .observability import configure_logging
from .routes import router

settings = get_settings()
configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Initialize persistence during application startup."""
    init_db()
    yield


app = FastAPI(title=settings.service_name, version=settings.service_version, lifespan=lifespan)
app.include_router(router)


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError):
    return error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        trace_id=exc.trace_id or request.headers.get("x-trace-id"),
    )


@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException):
    return error_response(
        status_code=exc.status_code,
        code=HTTP_ERROR_CODES.get(exc.status_code, "INTERNAL_SERVER_ERROR"),
        message=str(exc.detail),
        trace_id=request.headers.get("x-trace-id"),
    )
