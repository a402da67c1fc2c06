"""
Main FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.api.routes import health
from app.api.routes import logging as logging_routes
from app.api.routes import metrics, query
from app.core.config import get_settings
from app.core.execution_error_types import (MISSING_FIELDS_MESSAGE,
                                            QueryValidationError)
from app.core.logging_config import LoggingConfig
from app.core.middleware import (BodySizeLimitMiddleware,
                                 LoggingContextMiddleware)
from app.core.middleware_metrics import MetricsMiddleware
from app.core.tracing import configure_tracing, shutdown_tracing
from app.services.query_bridge import get_query_bridge

# Configure logging first
LoggingConfig.configure()

logger = LoggingConfig.get_logger(__name__)

QUERY_PATHS = ("/api/query", "/api/visualize")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI app"""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode on port {settings.api_port}...")
    status = get_query_bridge().health()
    logger.info(
        f"jqlite: {status.jqlite_path} "
        f"({'ready' if status.jqlite_available else 'not found'})"
    )
    logger.info(
        f"Visualization: {status.visualization_path} "
        f"({'ready' if status.visualization_available else 'not built yet'})"
    )

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    shutdown_tracing()


_settings = get_settings()
app = FastAPI(
    title=_settings.app_name,
    description="HTTP bridge to the jqlite command-line query engine",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrumentation adds middleware, so it has to happen before the app starts
configure_tracing(app)

# Middleware added last runs first: CORS, metrics, logging context, body limit
app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=_settings.max_request_body_bytes)
app.add_middleware(LoggingContextMiddleware)
app.add_middleware(MetricsMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allowed_origins_list,
    allow_credentials="*" not in _settings.allowed_origins_list,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QueryValidationError)
async def query_validation_exception_handler(request: Request, exc: QueryValidationError):
    """Missing request fields are a client error, no engine is invoked"""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed query bodies share the missing-fields response"""
    logger.info("Rejected malformed request body", extra={"errors": str(exc.errors())})
    if request.url.path in QUERY_PATHS:
        return JSONResponse(status_code=400, content={"error": MISSING_FIELDS_MESSAGE})
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "detail": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler to log all unhandled errors"""
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        }
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


# Include routers
app.include_router(query.router)
app.include_router(health.router)
app.include_router(logging_routes.router)
app.include_router(metrics.router)


@app.get("/api")
async def root():
    """Root API endpoint"""
    settings = get_settings()
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "running",
        "environment": settings.app_env,
    }


# Front-end, mounted last so API routes take precedence
_static_dir = _settings.resolved_static_dir
if _static_dir.is_dir():
    app.mount("/", StaticFiles(directory=str(_static_dir), html=True), name="static")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=_settings.api_host,
        port=_settings.api_port,
        reload=_settings.app_env == "development",
    )
