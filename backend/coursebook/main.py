# backend/coursebook/main.py
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.exceptions import DomainException
from .database import Base, engine
from .middleware.prometheus_middleware import PrometheusMiddleware
from .routes.v1 import courses as courses_v1
from .routes.v1 import health as health_v1
from .routes.v1 import prometheus as prometheus_v1
from .routes.v1 import schedules as schedules_v1

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

API_TITLE = "Coursebook API"
API_DESCRIPTION = "Course enrollment, class allocation and progress tracking"
API_VERSION = "1.0.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(f"Starting {API_TITLE} v{API_VERSION} ({settings.environment})")
    if settings.is_sqlite:
        # Local SQLite databases are created in place; server databases are migrated
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=engine)
    if not settings.meeting_provisioning_configured:
        logger.warning("Google credentials not configured; meeting links will not be created")
    yield
    logger.info(f"{API_TITLE} shutting down")


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Domain errors that escape a route keep the structured error body."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"message": exc.message, "code": exc.code, "details": exc.details}},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    app.add_exception_handler(DomainException, domain_exception_handler)  # type: ignore[arg-type]
    app.add_middleware(PrometheusMiddleware)

    # Create API v1 router
    api_v1 = APIRouter(prefix="/api/v1")

    # Note: Route order matters - schedule routes must come BEFORE the /{course_id} catch-all
    api_v1.include_router(schedules_v1.router, prefix="/courses")
    api_v1.include_router(courses_v1.router, prefix="/courses")

    app.include_router(api_v1)
    app.include_router(health_v1.router)
    app.include_router(prometheus_v1.router)
    return app


app = create_app()
