"""structlog setup and the request-context middleware."""

from __future__ import annotations

import logging
import sys
import time
from typing import Iterable, List, Optional
from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
TRACE_ID_HEADER = "X-Trace-ID"


def _processors() -> List:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def configure_logging(service_name: str, level: int = logging.INFO) -> structlog.stdlib.BoundLogger:
    """Route structlog through stdlib logging as one JSON object per line."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)

    structlog.configure(
        processors=_processors(),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger(service_name).bind(service=service_name)


def tenant_slug_from_path(path: str, reserved: Iterable[str] = ()) -> Optional[str]:
    """First non-empty path segment, unless it names a reserved route."""
    segment = next((part for part in path.split("/") if part), None)
    if segment is None or segment in set(reserved):
        return None
    return segment


class RequestContextLogMiddleware(BaseHTTPMiddleware):
    """Bind request id, trace id and tenant slug for every log line of a request.

    One ``request_completed`` (or ``request_failed``) event is written per
    request, and the request id is echoed back in the response headers.
    """

    def __init__(
        self,
        app,
        *,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        reserved_paths: Iterable[str] = (),
    ) -> None:
        super().__init__(app)
        self._logger = logger or structlog.get_logger()
        self._reserved = frozenset(reserved_paths)

    def _bind(self, request: Request) -> str:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            trace_id=request.headers.get(TRACE_ID_HEADER) or request_id,
            tenant_slug=tenant_slug_from_path(request.url.path, self._reserved),
            path=request.url.path,
            method=request.method,
        )
        return request_id

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = self._bind(request)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._logger.exception("request_failed", duration_ms=_elapsed_ms(started))
            raise
        else:
            self._logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=_elapsed_ms(started),
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
