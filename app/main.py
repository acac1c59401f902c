"""
FastAPI application entry point
Main application factory and configuration
Reference: https://fastapi.tiangolo.com/tutorial/bigger-applications/
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.exceptions import LookboardException, StoreException
from app.core.redis import get_redis_client

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events
    Validates store connectivity on startup
    Reference: https://fastapi.tiangolo.com/advanced/events/
    """
    try:
        await get_redis_client().ping()
        logger.info("✓ Key-value store connection successful")
    except StoreException as e:
        logger.error(f"✗ Key-value store connection failed: {e.message}")
        logger.error(
            "Please check:\n"
            "1. UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN are set\n"
            "2. The Upstash database is active and reachable"
        )
        # Don't raise - let the app start so health checks keep working

    yield


# Create FastAPI application instance
# Reference: https://fastapi.tiangolo.com/reference/fastapi/
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="Looks, lookboards and client share links backed by Upstash Redis",
    docs_url="/docs",  # Swagger UI documentation
    redoc_url="/redoc",  # ReDoc documentation
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Every failure reaches the client as {"message": ...}
# Reference: https://fastapi.tiangolo.com/tutorial/handling-errors/
@app.exception_handler(LookboardException)
async def lookboard_exception_handler(request: Request, exc: LookboardException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": f"Missing or invalid fields. {message}"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal Server Error"},
    )


# Include API routers
# All routes from api_router will be included in the main app
app.include_router(api_router)


@app.get("/")
async def root():
    """
    Root endpoint
    Provides basic information about the API
    """
    return {
        "message": f"Welcome to {settings.PROJECT_NAME}",
        "version": settings.VERSION,
        "docs": "/docs",
    }
