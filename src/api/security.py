# coding: utf-8
"""
Security Module for the CryptoTracker API

Provides:
- Client address extraction (rate limit key)
- Cross-origin allow-list enforcement at the edge
- Log sanitization
"""

import re
from typing import Iterable, List, Optional, Pattern

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger

from config.config import (
    ALLOW_VERCEL_PREVIEWS,
    TRUST_PROXY_HEADERS,
    VERCEL_PREVIEW_ORIGIN_REGEX,
    get_allowed_origins,
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_client_ip(request: Request) -> str:
    """
    Extract client IP from request.
    Honors X-Forwarded-For / X-Real-IP only behind a trusted reverse proxy.
    """
    if TRUST_PROXY_HEADERS:
        # X-Forwarded-For may hold a proxy chain, first entry is the client
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

    if request.client:
        return request.client.host

    return "unknown"


def sanitize_log_content(content: str, max_length: int = 200) -> str:
    """Sanitize content for logging (prevent log injection)"""
    if not content:
        return ""

    sanitized = re.sub(r'[\x00-\x1f\x7f-\x9f]', '', content)

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + "..."

    return sanitized


# =============================================================================
# ORIGIN POLICY
# =============================================================================

class OriginPolicy:
    """
    Allow-list of browser origins permitted to call the API with credentials.

    Exact origins plus optional regex patterns (Vercel preview deployments).
    """

    def __init__(self, origins: Iterable[str], patterns: Iterable[str] = ()):
        self.origins: List[str] = [origin.rstrip("/") for origin in origins]
        self.patterns: List[Pattern[str]] = [re.compile(p) for p in patterns]

    @classmethod
    def from_config(cls) -> "OriginPolicy":
        patterns = [VERCEL_PREVIEW_ORIGIN_REGEX] if ALLOW_VERCEL_PREVIEWS else []
        return cls(get_allowed_origins(), patterns)

    @property
    def origin_regex(self) -> Optional[str]:
        """Single regex for Starlette's CORSMiddleware"""
        if not self.patterns:
            return None
        return "|".join(f"(?:{p.pattern})" for p in self.patterns)

    def is_allowed(self, origin: Optional[str]) -> bool:
        # Requests without Origin (curl, server-to-server, mobile apps) pass
        if not origin:
            return True
        origin = origin.rstrip("/")
        if origin in self.origins:
            return True
        return any(p.fullmatch(origin) for p in self.patterns)


# =============================================================================
# ORIGIN GUARD MIDDLEWARE
# =============================================================================

class OriginGuardMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests whose Origin is not on the allow-list.

    CORSMiddleware only withholds CORS headers; this stops the request
    before it reaches a route (and before it can cost an upstream call).
    """

    def __init__(self, app, policy: OriginPolicy):
        super().__init__(app)
        self.policy = policy

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("Origin")
        if not self.policy.is_allowed(origin):
            logger.warning(
                f"CORS blocked origin: {sanitize_log_content(origin or '')} "
                f"({request.method} {request.url.path} from {get_client_ip(request)})"
            )
            return JSONResponse(status_code=403, content={"error": "Not allowed by CORS"})

        return await call_next(request)
