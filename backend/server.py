from fastapi import FastAPI, APIRouter, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
from sqlalchemy import text
from typing import Optional
import logging
import time
import uuid
from pathlib import Path
from contextlib import asynccontextmanager
from datetime import datetime, timezone

# Load environment variables first
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Import configuration
from config import Settings, get_settings, get_cors_config, validate_environment

# Import logging and error tracking
from logging_config import setup_logging, get_logger, set_request_context, clear_request_context
from sentry_integration import init_sentry, capture_exception, set_tag

# Import database and routers
from database import init_db, create_engine_from_settings, create_session_factory
from routers import auth_router, contacts_router
from models.schemas import ErrorResponse
from services.errors import ConfigurationError, TransientStorageError
from services.tokens import TokenSigner

logger = get_logger(__name__)

RETRY_AFTER_SECONDS = 5
REQUEST_ID_HEADER = "X-Request-ID"


def _correlation_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _validation_messages(exc: RequestValidationError) -> list:
    """Flatten pydantic errors into 'field: message' strings"""
    messages = []
    for error in exc.errors():
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        messages.append(f"{'.'.join(location)}: {message}" if location else message)
    return messages


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API application.

    Startup (lifespan) constructs the token signer and the database engine;
    a missing JWT secret aborts startup with ConfigurationError.
    """
    settings = settings or get_settings()

    # Use JSON format in production, plain text in development
    setup_logging(
        level=settings.LOG_LEVEL,
        json_format=settings.is_production,
        service_name="contact-manager"
    )

    if settings.SENTRY_DSN:
        init_sentry(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            release=settings.API_VERSION,
            traces_sample_rate=0.1 if settings.is_production else 0.0,
        )
        set_tag("service", "contact-manager")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler"""
        logger.info("=" * 60)
        logger.info("Starting Contact Manager API...")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Debug Mode: {settings.debug_enabled}")
        logger.info("=" * 60)

        env_status = validate_environment(settings)
        if not env_status["valid"]:
            for error in env_status["errors"]:
                logger.error(f"Configuration Error: {error}")
            if settings.is_production:
                raise ConfigurationError("Cannot start in production with invalid configuration")

        for warning in env_status.get("warnings", []):
            logger.warning(f"Configuration Warning: {warning}")

        # Fatal when the secret is missing
        app.state.token_signer = TokenSigner.from_settings(settings)

        engine = create_engine_from_settings(settings)
        try:
            await init_db(engine)
            logger.info("Database connection established")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            await engine.dispose()
            raise

        app.state.engine = engine
        app.state.session_factory = create_session_factory(engine)

        logger.info("Contact Manager API started successfully")

        yield

        logger.info("Shutting down Contact Manager API...")
        await engine.dispose()

    app = FastAPI(
        title=settings.API_TITLE,
        description="""
        Multi-tenant contact manager.

        ### Authentication (/api/auth)
        - Register and log in with email and password
        - JWT bearer tokens

        ### Contacts (/api/contacts)
        - Per-user contact CRUD
        - Search, sorting and pagination
        - Soft delete, trash listing and restore
        """,
        version=settings.API_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug_enabled else None,
        redoc_url="/api/redoc" if settings.debug_enabled else None,
    )
    app.state.settings = settings

    # Create a router with the /api prefix
    api_router = APIRouter(prefix="/api")

    # ==================== HEALTH CHECK ENDPOINTS ====================

    @api_router.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """
        Detailed health check for load balancers and uptime monitors.

        Returns:
        - 200: All systems operational
        - 503: Database unavailable
        """
        health_status = {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": settings.API_VERSION,
            "environment": settings.ENVIRONMENT,
            "checks": {}
        }

        try:
            async with request.app.state.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            health_status["checks"]["database"] = {"status": "connected"}
        except Exception as e:
            logger.error(f"Database health check failed: {e.__class__.__name__}")
            health_status["status"] = "unhealthy"
            health_status["checks"]["database"] = {"status": "disconnected"}

        env_status = validate_environment(settings)
        health_status["checks"]["configuration"] = {
            "status": "valid" if env_status["valid"] else "invalid",
            "warnings": len(env_status.get("warnings", [])),
            "errors": len(env_status.get("errors", []))
        }

        if health_status["status"] == "unhealthy":
            raise HTTPException(status_code=503, detail=health_status)

        return health_status

    @api_router.get("/health/ready", tags=["Health"])
    async def readiness_check(request: Request):
        """Returns 200 only when the database answers."""
        try:
            async with request.app.state.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            raise HTTPException(status_code=503, detail={"status": "not_ready"})

        return {"status": "ready", "timestamp": datetime.now(timezone.utc).isoformat()}

    @api_router.get("/health/live", tags=["Health"])
    async def liveness_check():
        """Returns 200 if the process is running (doesn't check dependencies)."""
        return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}

    api_router.include_router(auth_router)
    api_router.include_router(contacts_router)
    app.include_router(api_router)

    # ==================== MIDDLEWARE ====================

    app.add_middleware(CORSMiddleware, **get_cors_config(settings))

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Correlation id and timing for every request"""
        start_time = time.time()

        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        set_request_context(request_id=request_id)

        if settings.debug_enabled:
            logger.debug(f"{request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Request failed: {e.__class__.__name__}")
            raise
        finally:
            clear_request_context()

        process_time = time.time() - start_time
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))

        if settings.debug_enabled or response.status_code >= 400:
            logger.info(
                f"[{request_id}] {request.method} {request.url.path} -> "
                f"{response.status_code} ({process_time:.3f}s)"
            )

        return response

    # ==================== EXCEPTION HANDLERS ====================

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                message="Validation failed",
                errors=_validation_messages(exc),
            ).model_dump(by_alias=True),
        )

    @app.exception_handler(TransientStorageError)
    async def storage_exception_handler(request: Request, exc: TransientStorageError):
        correlation_id = _correlation_id(request)
        logger.error(f"[{correlation_id}] Storage unavailable during {exc.operation}: {exc.reason}")
        capture_exception(exc, correlation_id=correlation_id, operation=exc.operation)

        return JSONResponse(
            status_code=503,
            content={
                "detail": "Service temporarily unavailable",
                "correlationId": correlation_id,
            },
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions without exposing internals"""
        correlation_id = _correlation_id(request)
        logger.error(f"[{correlation_id}] Unhandled exception: {exc.__class__.__name__}", exc_info=exc)
        capture_exception(exc, correlation_id=correlation_id)

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "correlationId": correlation_id,
            }
        )

    return app


app = create_app()
