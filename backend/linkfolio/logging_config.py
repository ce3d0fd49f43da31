"""
Logging setup for LinkFolio.

Every record carries the id and route of the request that produced it, so a
single redirect or API call can be followed through the service layer.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Optional

from .config import settings

_request_id: ContextVar[Optional[str]] = ContextVar("linkfolio_request_id", default=None)
_route: ContextVar[Optional[str]] = ContextVar("linkfolio_route", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s %(route)s] %(name)s: %(message)s"

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "multipart")


def bind_request(request_id: Optional[str] = None, route: Optional[str] = None) -> str:
    """Start a logging context for a request, minting an id if the client sent none."""
    rid = (request_id or "").strip()[:64] or uuid.uuid4().hex[:12]
    _request_id.set(rid)
    _route.set(route)
    return rid


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get() or "-"
        record.route = _route.get() or "-"
        return True


def setup_logging(level: Optional[str] = None) -> None:
    """Send application logs to stdout at LOG_LEVEL (DEBUG when DEBUG is on)."""
    name = level or ("DEBUG" if settings.DEBUG else settings.LOG_LEVEL)
    log_level = logging.getLevelName(name.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, "%Y-%m-%dT%H:%M:%S"))
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
