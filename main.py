# Essential imports
import time
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from routers import auth
from contextlib import asynccontextmanager

# Import all models for SQLAlchemy relationship resolution
import models
from core.database import Base, engine

# Rate limiter imports
from slowapi.errors import RateLimitExceeded
from middleware.rate_limiter import limiter

# Logging imports
from core.logging_config import setup_logging, get_logger
from middleware import RequestIDMiddleware, get_request_id
from core.config import settings
from core.exceptions import AppError, DeliveryError
from utils.logger import log_request

# CORS imports
from fastapi.middleware.cors import CORSMiddleware

# Initialize logging
setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("Application startup complete", extra={"event": "startup"})
    yield
    logger.info("Application shutting down", extra={"event": "shutdown"})


app = FastAPI(
    title=settings.APP_NAME,
    description="Registration, login, email verification and session tokens",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"message": message}})


# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# HTTP Request Logging Middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    duration = (time.time() - start_time) * 1000  # milliseconds
    client_ip = request.client.host if request.client else None

    log_request(logger, request.method, request.url.path, response.status_code, duration, client_ip=client_ip)

    return response


# Added after log_requests so it wraps it and the request id is already set
app.add_middleware(RequestIDMiddleware)


# Health check
@app.get("/health")
async def health_check():
    logger.debug("Health check requested")
    return {"status": "Healthy"}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if isinstance(exc, DeliveryError):
        logger.error(
            "Email delivery failed",
            extra={"path": request.url.path, "reason": exc.reason}
        )
    elif exc.status_code >= 500:
        logger.error(
            f"Application error: {exc.message}",
            extra={"path": request.url.path, "error_type": type(exc).__name__}
        )
    return error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Request schema failures are reported as 400 with the first problem found.
    """
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = first.get("loc", ["body"])[-1]
        if first.get("type") == "value_error":
            message = first.get("msg", message).removeprefix("Value error, ")
        else:
            message = f"{field}: {first.get('msg', message)}"
    return error_response(status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
        message = "Route not found"
    return error_response(exc.status_code, message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning("Rate limit exceeded", extra={"path": request.url.path, "limit": str(exc.detail)})
    return error_response(status.HTTP_429_TOO_MANY_REQUESTS, f"Rate limit exceeded: {exc.detail}")


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Logs unhandled exceptions with stack trace and returns a generic 500
    without exposing internals.
    """
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "request_id": get_request_id(request)
        },
        exc_info=True
    )

    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# Including routers
app.include_router(auth.router)


# Add rate limiter to the app
app.state.limiter = limiter
