"""
FastAPI server for the CryptoTracker dashboard
Caching proxy in front of the CoinGecko public API
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.config import (
    ENVIRONMENT,
    FRONTEND_URL,
    HOST,
    PORT,
    SERVICE_NAME,
    SERVICE_VERSION,
    get_rate_limit,
    validate_config,
)
from config.logging import setup_logging
from config.sentry import init_sentry
from src.api.health import build_health
from src.api.router import router as api_router
from src.api.schemas import HealthResponse
from src.api.security import OriginGuardMiddleware, OriginPolicy, get_client_ip
from src.core.exceptions import MarketDataError

# Setup logging at module level (must run before app creation)
# This ensures logging works when uvicorn imports the module
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events
    """
    logger.info(f"Starting {SERVICE_NAME} v{SERVICE_VERSION}...")
    logger.info(f"Frontend URL: {FRONTEND_URL or 'http://localhost:3000'}")
    logger.info(f"Environment: {ENVIRONMENT}")
    init_sentry()

    yield

    logger.info(f"Shutting down {SERVICE_NAME}...")


# Per client IP, shared by every /api endpoint
limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[get_rate_limit()],
    storage_uri="memory://",
)

origin_policy = OriginPolicy.from_config()

app = FastAPI(
    title=SERVICE_NAME,
    description="Caching proxy for CoinGecko market data",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

app.state.limiter = limiter


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    429 body for the per-IP limit

    Must stay sync: SlowAPIMiddleware calls the registered handler without awaiting it.
    """
    logger.warning(f"Rate limit exceeded for {get_client_ip(request)}: {exc.detail}")
    return JSONResponse(
        status_code=429,
        content={"error": "Too many requests from this IP, please try again later."},
    )


app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Middleware order: last added runs first (CORS -> origin guard -> rate limit)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(OriginGuardMiddleware, policy=origin_policy)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origin_policy.origins,
    allow_origin_regex=origin_policy.origin_regex,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


# Security headers (API only serves JSON)
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# All API endpoints live under /api
app.include_router(api_router, prefix="/api")


@app.get("/")
@limiter.exempt
async def root():
    """
    Root endpoint
    """
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health", response_model=HealthResponse)
@limiter.exempt
async def health() -> HealthResponse:
    """
    Health check endpoint (outside the rate limit)
    """
    return build_health()


@app.exception_handler(MarketDataError)
async def market_data_error_handler(request: Request, exc: MarketDataError):
    """
    Classified upstream / proxy failures keep their status code
    """
    if exc.status >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status}: {exc.message}")

    return JSONResponse(status_code=exc.status, content=exc.to_dict())


# Error handler for HTTPException (must be before generic Exception handler)
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handle HTTPException properly - return correct status code and {error} body
    """
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = "Route not found"
    else:
        message = str(exc.detail)

    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {message}")
    elif exc.status_code != 404:
        logger.warning(f"HTTP {exc.status_code}: {message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Invalid query/path parameters -> 400
    """
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "query")
        problems.append(f"{location}: {error.get('msg', 'invalid value')}")

    message = "Invalid request parameters"
    if problems:
        message = f"{message} ({'; '.join(problems)})"

    logger.warning(f"{request.method} {request.url.path} -> 400: {message}")
    return JSONResponse(status_code=400, content={"error": message})


# Error handler for unexpected exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unexpected errors
    """
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")

    content = {"error": "Internal server error"}
    if ENVIRONMENT == "development":
        content["message"] = str(exc)

    return JSONResponse(status_code=500, content=content)


if __name__ == "__main__":
    import uvicorn

    # Validate configuration
    if not validate_config():
        logger.error("Configuration validation failed. Please check your .env file.")
        exit(1)

    logger.info("Configuration validated successfully")

    uvicorn.run(
        "api_server:app",
        host=HOST,
        port=PORT,
        reload=ENVIRONMENT == "development",
        log_level="info",
    )
