"""Request logging, request ids and response provenance metrics."""

import logging
import re
import time
import uuid
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

from meteo_cache.config import Settings

REQUEST_ID_HEADER = "X-Request-ID"
# Set by routes that return weather data; value is a ``Source``.
SOURCE_HEADER = "X-Data-Source"

_CLIENT_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

http_requests = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
http_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
served_by_source = Counter(
    "weather_responses_total",
    "Weather and forecast responses by data source",
    ["path", "source"],
)


def configure_logging(settings: Settings) -> None:
    """Configure structlog based on settings."""
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)

    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.log_format == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    # httpx logs every provider call at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def request_id_for(request: Request) -> str:
    """Reuse a well-formed client request id, otherwise mint a short one."""
    supplied = request.headers.get(REQUEST_ID_HEADER, "")
    if _CLIENT_REQUEST_ID.match(supplied):
        return supplied
    return uuid.uuid4().hex[:8]


def route_template(request: Request) -> str:
    """Matched route path such as ``/api/v1/locations/{index}``; raw path if none matched."""
    template = getattr(request.scope.get("route"), "path_format", None)
    return template if isinstance(template, str) else request.url.path


class LoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id to every log line and record how each response was produced.

    Weather routes report their data source through ``X-Data-Source``; the
    middleware adds it to the completion log and counts it, so synthetic
    fallbacks are visible without reading response bodies.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request_id_for(request)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        logger = structlog.get_logger()

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Request failed with exception",
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            http_requests.labels(
                method=request.method, path=route_template(request), status="500"
            ).inc()
            raise

        duration = time.perf_counter() - start
        path = route_template(request)
        http_requests.labels(
            method=request.method, path=path, status=str(response.status_code)
        ).inc()
        http_duration.labels(method=request.method, path=path).observe(duration)

        source = response.headers.get(SOURCE_HEADER)
        if source is not None:
            served_by_source.labels(path=path, source=source).inc()

        logger.info(
            "Request completed",
            route=path,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
            source=source,
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
