"""
FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pharmacall.api.v1.endpoints import health
from pharmacall.api.v1.routes import api_router
from pharmacall.core.config import get_settings
from pharmacall.core.errors import CallQueueError, Internal

logger = logging.getLogger(__name__)

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - startup and shutdown events.

    Startup:
    - Validates capability configuration (fatal only in production)
    """
    logger.info("Starting Pharmacist Call Queue...")

    strict_validation = settings.environment == "production"
    try:
        from pharmacall.core.validation import validate_providers_on_startup
        validate_providers_on_startup(settings, strict=strict_validation)
    except RuntimeError as e:
        if strict_validation:
            logger.error(f"Startup failed: {e}")
            raise
        logger.warning(f"Configuration warnings (non-fatal in {settings.environment}): {e}")

    logger.info("Pharmacist Call Queue started successfully")

    yield  # Application is running

    logger.info("Pharmacist Call Queue shutdown complete")


app = FastAPI(
    title="Pharmacist Call Queue",
    description="Live pharmacist call queue and hand-off service",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CallQueueError)
async def call_queue_error_handler(request: Request, exc: CallQueueError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    error = Internal("Internal server error.")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


app.include_router(health.router)
app.include_router(api_router, prefix=settings.api_prefix)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
