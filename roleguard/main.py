"""
Application factory wiring the role guards, CSRF protection and health checks.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from roleguard.api.csrf import router as csrf_router
from roleguard.core.config import settings
from roleguard.core.exceptions import AppException, app_exception_handler
from roleguard.core.hierarchy_cache import HierarchyCache, get_hierarchy_cache
from roleguard.core.logging import configure_logging, get_logger
from roleguard.core.middleware import CsrfProtectionMiddleware, correlation_id_middleware
from roleguard.core.rate_limiter import FixedWindowRateLimiter
from roleguard.database import check_db_connection, dispose_engine

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "roleguard_starting",
        version=settings.app_version,
        environment=settings.environment,
    )
    if not await check_db_connection():
        logger.warning("database_unreachable_at_startup")

    yield

    await dispose_engine()
    logger.info("roleguard_stopped")


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("database_error", error=str(exc), request_path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "DATABASE_ERROR", "detail": "A database error occurred"},
    )


def register_health_routes(app: FastAPI) -> None:
    """Liveness at /health and a readiness report under the API prefix."""

    @app.get("/health", tags=["Health"])
    async def liveness():
        return {"status": "healthy", "version": settings.app_version}

    @app.get(f"{settings.api_prefix}/health", tags=["Health"])
    async def readiness(cache: HierarchyCache = Depends(get_hierarchy_cache)):
        database_ok = await check_db_connection()
        return {
            "status": "healthy" if database_ok else "degraded",
            "version": settings.app_version,
            "components": {
                "database": "healthy" if database_ok else "unhealthy",
                "role_hierarchy_cache": "warm" if cache.is_warm else "cold",
            },
        }


def create_app(csrf_limiter: Optional[FixedWindowRateLimiter] = None) -> FastAPI:
    """
    Build the application.

    Args:
        csrf_limiter: CSRF failure limiter to use instead of the process-wide one

    Returns:
        Configured FastAPI application
    """
    configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        lifespan=lifespan,
    )

    # Middleware added last runs first: correlation id, then CORS, then CSRF.
    app.add_middleware(CsrfProtectionMiddleware, limiter=csrf_limiter)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(correlation_id_middleware)

    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    app.include_router(csrf_router, prefix=settings.api_prefix)
    register_health_routes(app)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "roleguard.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
