# coding: utf-8
"""
Logging configuration with loguru for the CryptoTracker backend

Console output always; rotated files when LOG_TO_FILE is set; ERROR and
CRITICAL records forwarded to Sentry when a DSN is configured.
"""
import logging
import sys
from pathlib import Path

from loguru import logger
import sentry_sdk

from config.config import LOG_LEVEL, ENVIRONMENT, LOG_TO_FILE, SENTRY_DSN, SERVICE_NAME


LOGS_DIR = Path(__file__).parent.parent / "logs"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
PLAIN_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"

# (file name pattern, minimum level, retention)
FILE_SINKS = (
    ("proxy_{time:YYYY-MM-DD}.log", "DEBUG", "7 days"),
    ("proxy_error_{time:YYYY-MM-DD}.log", "ERROR", "30 days"),
)

# Third-party loggers that flood the console at INFO
QUIET_LOGGERS = ("aiohttp", "asyncio", "uvicorn.access", "slowapi")


def setup_logging() -> None:
    """Configure loguru sinks for the proxy process"""
    logger.remove()

    logger.add(sys.stdout, format=CONSOLE_FORMAT, level=LOG_LEVEL, colorize=True)

    if LOG_TO_FILE:
        LOGS_DIR.mkdir(exist_ok=True)
        for pattern, level, retention in FILE_SINKS:
            logger.add(
                LOGS_DIR / pattern,
                format=PLAIN_FORMAT,
                level=level,
                rotation="00:00",
                retention=retention,
                compression="zip",
                encoding="utf-8",
            )

    if SENTRY_DSN:
        logger.add(sentry_sink, level="ERROR", format="{message}")

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"{SERVICE_NAME} logging ready | Environment: {ENVIRONMENT} | Level: {LOG_LEVEL}")


def sentry_sink(message):
    """Forward an ERROR/CRITICAL loguru record to Sentry"""
    record = message.record

    if record["exception"]:
        sentry_sdk.capture_exception(record["exception"].value)
        return

    sentry_sdk.capture_message(
        record["message"],
        level="fatal" if record["level"].name == "CRITICAL" else "error",
        extras={
            "module": record["name"],
            "function": record["function"],
            "line": record["line"],
        },
    )
