import logging
import sys

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .errors import DmsError, ValidationError
from .middleware import RequestLoggingMiddleware
from .middleware.logging import ACCESS_LOGGER_NAME
from .routers import (
    admin_documents,
    assignments,
    audit_logs,
    auth,
    divisions,
    documents,
    files,
    health,
    ocr,
    reports,
    system_settings,
    users,
)

logging.basicConfig(level=logging.INFO, handlers=[logging.StreamHandler(sys.stdout)])
logging.getLogger(ACCESS_LOGGER_NAME).setLevel(logging.INFO)

logger = logging.getLogger(__name__)

if settings.sentry_dsn and str(settings.sentry_dsn).strip().lower().startswith(("http://", "https://")):
    sentry_sdk.init(
        dsn=str(settings.sentry_dsn).strip(),
        environment=settings.environment,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=settings.sentry_traces_sample_rate,
        profiles_sample_rate=settings.sentry_profiles_sample_rate,
    )

app = FastAPI(title="Ministry Document Management API", version="0.1.0")

app.add_middleware(RequestLoggingMiddleware)

if settings.metrics_enabled:
    instrumentator = Instrumentator(should_group_status_codes=True, should_ignore_untemplated=True)
    instrumentator.instrument(app).expose(app, include_in_schema=False)

# CORS (allow local web)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, message: str, kind: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, "kind": kind})


@app.exception_handler(DmsError)
async def handle_dms_error(request: Request, exc: DmsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed kind=%s path=%s message=%s", exc.kind, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.message, exc.kind)


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = ValidationError.default_message
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        message = f"Invalid {location or 'request'}: {first.get('msg')}"
    return _error_response(400, message, ValidationError.kind)


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error path=%s", request.url.path)
    return _error_response(500, "Internal server error", "Internal")


app.include_router(health.router, tags=["health"])
app.include_router(auth.router)
app.include_router(documents.router, tags=["documents"])
app.include_router(files.router, tags=["files"])
app.include_router(admin_documents.router)
app.include_router(assignments.router)
app.include_router(audit_logs.router)
app.include_router(divisions.router)
app.include_router(users.router)
app.include_router(reports.router)
app.include_router(system_settings.router)
app.include_router(ocr.router)
