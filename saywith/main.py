"""
SayWith manager API.

Run locally with both backends in memory:
    SNOWFLAKE_MOCK_MODE=true R2_MOCK_MODE=true uvicorn saywith.main:app --reload

Production:
    gunicorn saywith.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import access, health, messages, templates
from .config.settings import get_settings
from .infrastructure.snowflake.client import create_snowflake_connection, snowflake_config_from_settings
from .infrastructure.snowflake.repositories.messages import MessageRepository

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


def prepare_message_table(settings) -> None:
    """Create the message table on first start. Failures are logged, /health/ready reports them."""
    try:
        with create_snowflake_connection(config=snowflake_config_from_settings(settings)) as conn:
            MessageRepository(conn, collection=settings.message_collection).ensure_table()
    except Exception as e:
        logger.error("Could not prepare message table", extra={"error": str(e)})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup and shutdown hooks.

    Missing configuration is logged, not fatal. The table is only
    prepared when Snowflake is real and fully configured.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "SayWith Manager API starting",
        extra={
            "version": settings.api_version,
            "storage_provider": settings.storage_provider,
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "r2": settings.r2_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )
    elif not settings.snowflake_mock_mode:
        prepare_message_table(settings)

    yield

    logger.info("SayWith Manager API shutting down")


def create_app() -> FastAPI:
    """Build the app: CORS, routers and the catch-all error handler."""
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Create and edit SayWith messages.

        ## Authentication

        Every message endpoint requires the shared PIN in the `X-Access-Pin` header.
        The lock screen can check a PIN with `POST /api/v1/access/unlock`.

        ## Workflow

        1. **Create**: `POST /api/v1/messages`
           - Name, template, flags, and optional media/audio/subtitle files
           - Returns the message id, share URL and QR codes

        2. **Edit**: `GET /api/v1/messages/{id}` then `PATCH /api/v1/messages/{id}`
           - Only fields that differ from the stored message are written

        3. **Share**: `GET /api/v1/messages/{id}/qrcodes.zip`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        access.router,
        prefix="/api/v1/access",
        tags=["Access"],
    )

    app.include_router(
        templates.router,
        prefix="/api/v1/templates",
        tags=["Templates"],
    )

    app.include_router(
        messages.router,
        prefix="/api/v1/messages",
        tags=["Messages"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the docs."""
        return {
            "message": "SayWith Manager API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Unexpected errors are logged with traceback; the client only gets a generic message."""
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error. Please try again."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Imported by uvicorn/gunicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "saywith.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
