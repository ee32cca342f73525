"""
Loguru logger setup for the equity scorer.

Level and output mode come from ``config.constants`` (and so from ``.env``):
- development: one colored, pipe-delimited line per record
- production: one JSON object per line, structured fields at the top level
"""

import json
import logging
import sys

from loguru import logger

from equity_scorer.src.config.constants import ENVIRONMENT, LOG_LEVEL

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {file}:{line} | {function} | {message}"

QUIET_LIBRARIES = ("aiohttp", "botocore", "boto3", "aiobotocore", "urllib3", "yfinance", "peewee")


def json_serializer(record) -> str:
    """Render a loguru record as one JSON line."""
    payload = {
        "timestamp": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
        "level": record["level"].name,
        "message": record["message"],
        "logger": {
            "name": record["name"],
            "file": record["file"].name,
            "line": record["line"],
            "function": record["function"],
        },
    }

    # bind(**fields) lands in extra directly, a logger.x(..., extra={...}) call nests it once
    fields = dict(record["extra"])
    nested = fields.pop("extra", None)
    if isinstance(nested, dict):
        fields.update(nested)
    for key, value in fields.items():
        payload.setdefault(key, value)

    error = record["exception"]
    if error:
        payload["exception"] = {
            "type": error.type.__name__ if error.type else None,
            "value": str(error.value) if error.value else None,
        }

    return json.dumps(payload, default=str)


def json_sink(message):
    print(json_serializer(message.record), flush=True)


def configure_logging(level: str = LOG_LEVEL, environment: str = ENVIRONMENT) -> None:
    """Replace every loguru handler with the one for ``environment``."""
    logger.remove()
    if environment == "production":
        logger.add(json_sink, level=level, enqueue=False, backtrace=True, diagnose=False)
    else:
        logger.add(
            sys.stdout,
            level=level,
            format=LOG_FORMAT,
            colorize=True,
            enqueue=False,
            backtrace=False,
            diagnose=False,
        )

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


configure_logging()

__all__ = ["logger", "configure_logging"]
