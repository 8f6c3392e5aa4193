# coding: utf-8
"""
aiohttp GET with failure classification

Turns every outcome of one HTTP call into either parsed JSON or one of the
MarketDataError subclasses, so callers never deal with aiohttp exceptions.
"""
import asyncio
import json
from typing import Any, Mapping, Optional

import aiohttp
from loguru import logger

from src.core.exceptions import (
    InternalFault,
    MarketDataError,
    OriginBlocked,
    RateLimited,
    ServiceUnavailable,
    UpstreamError,
)


DEFAULT_HEADERS = {"Accept": "application/json"}

# Relay services answer 403 with one of these when they refuse the origin
_ORIGIN_MARKERS = ("cors", "origin")


def extract_error_message(body: str, status: int) -> str:
    """
    Pull a readable message out of an error body

    Understands CoinGecko's two error shapes:
        {"error": "coin not found"}
        {"status": {"error_code": 429, "error_message": "..."}}
    """
    try:
        payload = json.loads(body) if body else None
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, str) and error:
            return error
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        status_block = payload.get("status")
        if isinstance(status_block, dict) and status_block.get("error_message"):
            return str(status_block["error_message"])

    text = (body or "").strip()
    if text and len(text) <= 200 and not text.startswith("<"):
        return text
    return f"Upstream responded with HTTP {status}"


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def classify_status(status: int, body: str, headers: Optional[Mapping[str, str]] = None) -> MarketDataError:
    """Map a non-2xx answer to the error taxonomy"""
    message = extract_error_message(body, status)
    if status == 429:
        retry_after = _parse_retry_after((headers or {}).get("Retry-After"))
        return RateLimited(message, retry_after=retry_after)
    if status == 403 and any(marker in (body or "").lower() for marker in _ORIGIN_MARKERS):
        return OriginBlocked(f"Origin rejected: {message}")
    return UpstreamError(status, message)


class HttpFetcher:
    """
    Minimal JSON GET client on top of aiohttp

    Opens a short-lived ClientSession per call unless a shared session is
    given. Each call is bounded by `timeout` seconds (aiohttp aborts the
    underlying connection when it elapses).
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session = session

    async def get_json(
        self,
        url: str,
        params: Optional[Mapping[str, str]] = None,
        timeout: float = 15.0,
    ) -> Any:
        if self._session is not None:
            return await self._get(self._session, url, params, timeout)

        async with aiohttp.ClientSession() as session:
            return await self._get(session, url, params, timeout)

    async def _get(
        self,
        session: aiohttp.ClientSession,
        url: str,
        params: Optional[Mapping[str, str]],
        timeout: float,
    ) -> Any:
        try:
            async with session.get(
                url,
                params=dict(params) if params else None,
                headers=DEFAULT_HEADERS,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                if 200 <= response.status < 300:
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise InternalFault(f"Malformed JSON from {response.url.host}: {e}")

                body = await response.text()
                raise classify_status(response.status, body, response.headers)

        except MarketDataError:
            raise

        except (asyncio.TimeoutError, TimeoutError):
            logger.warning(f"Request timed out after {timeout}s: {url[:120]}")
            raise ServiceUnavailable(f"Request timed out after {timeout:g}s")

        except aiohttp.ClientError as e:
            logger.warning(f"Network error for {url[:120]}: {e}")
            raise ServiceUnavailable(f"Could not reach service: {e}")

    async def __call__(
        self,
        url: str,
        params: Optional[Mapping[str, str]] = None,
        timeout: float = 15.0,
    ) -> Any:
        return await self.get_json(url, params=params, timeout=timeout)
