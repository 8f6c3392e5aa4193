# coding: utf-8
"""
Sentry configuration for error monitoring of the caching proxy
"""
import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.aiohttp import AioHttpIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from loguru import logger

from config.config import SENTRY_DSN, ENVIRONMENT, SERVICE_VERSION, COINGECKO_API_KEY_PARAM


def init_sentry() -> bool:
    """
    Initialize Sentry SDK for error monitoring

    Returns:
        True if Sentry was initialized, False if disabled or failed
    """
    if not SENTRY_DSN:
        logger.info("SENTRY_DSN not configured - error monitoring disabled")
        return False

    try:
        sentry_sdk.init(
            dsn=SENTRY_DSN,
            environment=ENVIRONMENT,
            release=f"cryptotracker-backend@{SERVICE_VERSION}",
            integrations=[
                AsyncioIntegration(),
                AioHttpIntegration(),  # Outbound upstream calls
                FastApiIntegration(),
            ],
            traces_sample_rate=0.1 if ENVIRONMENT == "production" else 1.0,
            sample_rate=1.0,
            attach_stacktrace=True,
            send_default_pii=False,
            max_breadcrumbs=50,
            before_send=before_send_hook,
        )

        logger.info(f"Sentry initialized successfully (Environment: {ENVIRONMENT})")
        return True

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False


def before_send_hook(event, hint):
    """
    Filter events before sending to Sentry

    Drops KeyboardInterrupt and scrubs the CoinGecko API key from request URLs.
    """
    if 'exc_info' in hint:
        exc_type, exc_value, tb = hint['exc_info']
        if isinstance(exc_value, KeyboardInterrupt):
            return None

    request = event.get('request')
    if request:
        query = request.get('query_string')
        if isinstance(query, str) and COINGECKO_API_KEY_PARAM in query:
            request['query_string'] = '[Filtered]'
        headers = request.get('headers', {})
        if 'Authorization' in headers:
            headers['Authorization'] = '[Filtered]'

    return event
