"""
FastAPI application initialization
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from api.routes import health, jobs
from core.config import settings
from core.exceptions import (
    ETLException,
    InvalidTransition,
    NotFoundError,
    StaleJobError,
    ValidationError
)
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Ingestion Job Engine API",
    description="Create, queue and monitor data ingestion jobs",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(jobs.router)


# ============================================================================
# Error mapping
# ============================================================================

def _error_response(status_code: int, exc: ETLException) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error_response(400, exc)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error_response(404, exc)


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return _error_response(409, exc)


@app.exception_handler(StaleJobError)
async def stale_job_handler(request: Request, exc: StaleJobError):
    return _error_response(409, exc)


@app.exception_handler(ETLException)
async def engine_error_handler(request: Request, exc: ETLException):
    logger.error(f"Unhandled engine error: {exc}")
    return _error_response(500, exc)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    from core.database import async_session_maker, init_models
    from ingestion.service import build_job_service

    logger.info("Starting Ingestion Job Engine API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    await init_models()

    app.state.session_factory = async_session_maker
    app.state.job_service = build_job_service(async_session_maker)
    app.state.job_service.scheduler.start(poll=settings.SCHEDULER_ENABLED)


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Ingestion Job Engine API")
    service = getattr(app.state, "job_service", None)
    if service is not None:
        await service.scheduler.shutdown()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Ingestion Job Engine API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "jobs": "/api/ingestion/jobs"
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host=settings.API_HOST, port=settings.API_PORT)
