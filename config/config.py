"""
Configuration module for CryptoTracker backend and fetch client

Loads configuration from environment variables using python-dotenv
"""

import os
from pathlib import Path
from typing import List
from dotenv import load_dotenv

# Load .env file (override=False: real environment wins over .env)
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path, override=False)


# Service identity
SERVICE_NAME: str = os.getenv("SERVICE_NAME", "CryptoTracker Backend API")
SERVICE_VERSION: str = "1.0.0"

# Server
HOST: str = os.getenv("HOST", "127.0.0.1")
PORT: int = int(os.getenv("PORT", "5000"))

# CoinGecko API
COINGECKO_API_BASE: str = os.getenv("COINGECKO_API_BASE", "https://api.coingecko.com/api/v3")
# Optional demo key - raises upstream rate limits, never part of cache keys
COINGECKO_API_KEY: str = os.getenv("COINGECKO_API_KEY", "")
COINGECKO_API_KEY_PARAM: str = "x_cg_demo_api_key"

# Upstream request timeout used by the proxy (seconds)
UPSTREAM_TIMEOUT: float = float(os.getenv("UPSTREAM_TIMEOUT", "15"))

# CORS
FRONTEND_URL: str = os.getenv("FRONTEND_URL", "")
VERCEL_URL: str = os.getenv("VERCEL_URL", "")
ALLOW_VERCEL_PREVIEWS: bool = (
    os.getenv("ALLOW_VERCEL_PREVIEWS", "false").lower() == "true"
)
# Vercel preview deployments: project-name-*.vercel.app
VERCEL_PREVIEW_ORIGIN_REGEX: str = r"^https://.*\.vercel\.app$"

# Rate limiting (per client IP, whole API surface)
# Only trust X-Forwarded-For / X-Real-IP when running behind a reverse proxy
TRUST_PROXY_HEADERS: bool = os.getenv("TRUST_PROXY_HEADERS", "false").lower() == "true"
RATE_LIMIT_WINDOW_MS: int = int(os.getenv("RATE_LIMIT_WINDOW_MS", "60000"))
RATE_LIMIT_MAX_REQUESTS: int = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))

# Environment
ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_TO_FILE: bool = os.getenv("LOG_TO_FILE", "true").lower() == "true"

# Optional: Sentry
SENTRY_DSN: str = os.getenv("SENTRY_DSN", "")

# Fetch client (dashboard side)
BACKEND_API_URL: str = os.getenv("BACKEND_API_URL", "http://localhost:5000/api/coingecko")
BACKEND_HEALTH_URL: str = os.getenv(
    "BACKEND_HEALTH_URL", BACKEND_API_URL.replace("/coingecko", "/health")
)
USE_CORS_PROXY: bool = os.getenv("USE_CORS_PROXY", "false").lower() == "true"


def get_allowed_origins() -> List[str]:
    """
    Exact origins allowed to call the API with credentials

    Localhost ports cover CRA (3000) and Vite (5173/5174) dev servers.
    """
    origins = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:5174",
    ]

    if FRONTEND_URL and FRONTEND_URL not in origins:
        origins.append(FRONTEND_URL.rstrip("/"))

    if VERCEL_URL:
        origins.append(f"https://{VERCEL_URL}")

    return origins


def get_rate_limit() -> str:
    """Rate limit string in slowapi/limits notation, e.g. '100/60 seconds'"""
    window_seconds = max(RATE_LIMIT_WINDOW_MS // 1000, 1)
    return f"{RATE_LIMIT_MAX_REQUESTS}/{window_seconds} seconds"


# Validation
def validate_config() -> bool:
    """Validate configuration variables"""
    errors = []

    if not COINGECKO_API_BASE.startswith(("http://", "https://")):
        errors.append("COINGECKO_API_BASE must be an http(s) URL")

    if RATE_LIMIT_MAX_REQUESTS <= 0:
        errors.append("RATE_LIMIT_MAX_REQUESTS must be positive")

    if UPSTREAM_TIMEOUT <= 0:
        errors.append("UPSTREAM_TIMEOUT must be positive")

    if errors:
        for error in errors:
            print(f"Configuration error: {error}")
        return False

    return True
