# app/main.py
"""
Main application file for ContactHub Scheduler.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
import logging
import json
from datetime import datetime

from app.api.api import api_router
from app.core.config import settings
from app.core.exceptions import (
    BusinessRuleException,
    CalendarException,
    ContactHubException,
    EntityNotFoundException,
    IntegrationException,
    UnknownHolidayException,
    ValidationException,
)
from app.core.scheduler import shutdown_scheduler, start_scheduler
from app.db.session import init_db

# --- Logging Configuration ---
LOG_LEVEL = getattr(logging, settings.LOG_LEVEL, logging.INFO)

logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("app")
logger.setLevel(LOG_LEVEL)

# APScheduler logs every job execution at INFO
logging.getLogger("apscheduler").setLevel(logging.WARNING)

logger.info(f"Configured root logger ('{logger.name}') effective level: {logger.getEffectiveLevel()} ({logging.getLevelName(logger.getEffectiveLevel())})")
# --- END: Logging Configuration ---


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema and run the dispatch scheduler for the app's lifetime."""
    init_db()
    if settings.DISPATCH_ENABLED:
        start_scheduler()
    else:
        logger.info("Dispatch scheduler disabled (DISPATCH_ENABLED=false)")
    yield
    shutdown_scheduler()


# Initialize FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="API for scheduling messages to contact groups",
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
    lifespan=lifespan,
)

# Set up CORS
origins_raw = settings.BACKEND_CORS_ORIGINS or []
origins = [str(origin) for origin in origins_raw if origin]
logger.info(f"Processed CORS origins: {origins}")

if not origins:
    fallback_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    logger.warning(
        f"No CORS origins configured in settings, using development fallbacks: {fallback_origins}"
    )
    origins = fallback_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=86400,
)

# --- Error Handlers ---
# First match wins, so subclasses come before their bases
EXCEPTION_STATUS_CODES = [
    (EntityNotFoundException, status.HTTP_404_NOT_FOUND),
    (UnknownHolidayException, status.HTTP_404_NOT_FOUND),
    (ValidationException, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (CalendarException, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (BusinessRuleException, status.HTTP_400_BAD_REQUEST),
    (IntegrationException, status.HTTP_502_BAD_GATEWAY),
]


def status_code_for(exc: ContactHubException) -> int:
    for exc_class, status_code in EXCEPTION_STATUS_CODES:
        if isinstance(exc, exc_class):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(ContactHubException)
async def contacthub_exception_handler(request: Request, exc: ContactHubException):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({status_code}): {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": jsonable_encoder(exc.to_dict())},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    error_details = jsonable_encoder(exc.errors())
    logger.error(f"--- Request Validation Error ---")
    logger.error(f"URL: {request.method} {request.url}")
    try:
        body = await request.json()
        logger.error(f"Request Body: {json.dumps(body, indent=2)}")
    except json.JSONDecodeError:
        logger.error("Request Body: Could not parse as JSON (or empty body).")
    except Exception as e:
        logger.error(f"Request Body: Error reading body - {e}")
    logger.error(f"Validation Errors:\n{json.dumps(error_details, indent=2)}")
    logger.error(f"--- End Validation Error ---")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": error_details},
    )

# Log requests
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = datetime.now()
    logger.info(f"-> Request: {request.method} {request.url.path}")
    try:
        response = await call_next(request)
        process_time = (datetime.now() - start_time).total_seconds()
        logger.info(f"<- Response: {response.status_code} ({process_time:.4f}s)")
        return response
    except Exception as e:
        process_time = (datetime.now() - start_time).total_seconds()
        logger.exception(
            f"!! Error during request processing for {request.method} {request.url.path} ({process_time:.4f}s): {e}"
        )
        raise e

# Include the API router
app.include_router(api_router, prefix=settings.API_V1_STR)

# Root and Health Check Endpoints
@app.get("/", tags=["Root"], summary="API Root Endpoint")
def read_root():
    """Provides basic API information and links to documentation."""
    return {
        "message": "Welcome to the ContactHub Scheduler API",
        "project_name": settings.PROJECT_NAME,
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "docs_url": app.docs_url,
        "redoc_url": app.redoc_url,
        "openapi_url": app.openapi_url,
    }

@app.get("/health", tags=["Health"], summary="API Health Check")
def health_check():
    """Returns the operational status of the API."""
    return {"status": "ok", "timestamp": datetime.now().isoformat()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
