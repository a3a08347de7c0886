"""
FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from genie_gateway.api.v1.routes import api_router, function_router
from genie_gateway.core.config import get_settings
from genie_gateway.core.errors import GatewayError
from genie_gateway.core.logging_config import configure_logging
from genie_gateway.core.tenant_middleware import TenantMiddleware
from genie_gateway.infrastructure.oauth.state import get_oauth_state_manager

load_dotenv()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - startup and shutdown events.

    Startup configures logging and reports the registered providers;
    shutdown closes the OAuth state Redis connection.
    """
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(f"Starting Market Genie gateway ({settings.environment})...")

    if not settings.supabase_url or not settings.supabase_service_key:
        logger.warning("SUPABASE_URL / SUPABASE_SERVICE_KEY not set; credential reads will fail")

    yield

    logger.info("Shutting down Market Genie gateway...")
    try:
        await get_oauth_state_manager().close()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"Invalid request: {location} {first.get('msg', '')}".strip()


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Market Genie Integration Gateway",
        description="Email sending and lead enrichment dispatch for Market Genie tenants",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # MULTI-TENANT: Enabled
    app.add_middleware(TenantMiddleware)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error(f"{request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"success": False, "error": _validation_message(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc) or "Internal server error"})

    app.include_router(function_router)
    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
