"""FastAPI application initialization."""

import asyncio
import os
import signal
from contextlib import asynccontextmanager

import logfire
import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration

from localsearch.api import admin, crawl, health, index, search
from localsearch.config import get_settings
from localsearch.db.client import create_store
from localsearch.dependencies import build_services
from localsearch.exceptions import (
    CrawlConflictError,
    DuplicateSiteError,
    LocalSearchError,
    ProjectNotFoundError,
    ProjectValidationError,
    SearchValidationError,
    SiteNotFoundError,
)
from localsearch.logging_config import setup_logfire
from localsearch.middleware.request_context import RequestContextMiddleware

APP_VERSION = "1.0.0"

# Set on SIGTERM/SIGINT; running crawls poll it and stop between URLs
shutdown_event = asyncio.Event()

ERROR_STATUS_CODES: dict[type[LocalSearchError], int] = {
    SiteNotFoundError: 404,
    ProjectNotFoundError: 404,
    CrawlConflictError: 409,
    DuplicateSiteError: 409,
    SearchValidationError: 400,
    ProjectValidationError: 400,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager with graceful shutdown support."""
    settings = get_settings()

    setup_logfire(app, settings)

    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            environment=settings.env,
            integrations=[FastApiIntegration()],
        )

    # One store for the whole process, shared by every service
    store = create_store(settings)
    app.state.services = build_services(settings, store)
    shutdown_event.clear()
    app.state.shutdown_event = shutdown_event

    loop = asyncio.get_running_loop()

    def signal_handler(sig_name: str):
        logfire.info(
            "Received shutdown signal, stopping running crawls", signal=sig_name
        )
        shutdown_event.set()

    # Register signal handlers (only works on Unix-like systems)
    try:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s.name))
    except NotImplementedError:
        logfire.warning(
            "Signal handlers not supported on this platform, "
            "running crawls will not stop gracefully"
        )

    logfire.info(
        "Application startup complete",
        environment=settings.env,
        store=store.backend,
    )

    yield

    shutdown_event.set()
    logfire.info("Application shutdown complete")


app = FastAPI(
    title="LocalSearch",
    description="Domain-scoped web crawler and full-text search engine",
    version=APP_VERSION,
    lifespan=lifespan,
)

# Request context middleware (must be first for request tracing)
app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LocalSearchError)
async def handle_domain_error(request: Request, exc: LocalSearchError):
    status_code = next(
        (code for cls, code in ERROR_STATUS_CODES.items() if isinstance(exc, cls)),
        500,
    )
    if status_code == 500:
        logfire.error(
            "Unhandled domain error",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        sentry_sdk.capture_exception(exc)
    return JSONResponse(
        status_code=status_code, content={"success": False, "error": str(exc)}
    )


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
):
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "Invalid request",
            "details": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the non-serializable ``ctx``/``input`` values."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


app.include_router(health.router, tags=["health"])
app.include_router(crawl.router, prefix="/api/crawl", tags=["crawl"])
app.include_router(search.router, prefix="/api/search", tags=["search"])
app.include_router(admin.router, prefix="/api", tags=["admin"])
app.include_router(index.router, prefix="/api/index", tags=["index"])


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "success": True,
        "message": "LocalSearch API",
        "version": APP_VERSION,
    }


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "localsearch.main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "local",
    )
