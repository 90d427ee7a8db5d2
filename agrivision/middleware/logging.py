"""Structured logging setup and per-request access logs."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from agrivision.config import LogFormat, get_settings

_configured = False

# Health-check endpoints polled by load balancers every few seconds.
_QUIET_PATHS = {"/", "/health", "/health/ready"}

# Path prefix -> area tag bound to every log line of the request.
_ROUTE_AREAS: tuple[tuple[str, str], ...] = (
	("/api/analyze-ndvi", "vegetation"),
	("/api/disease/", "disease_model"),
	("/api/pest/", "pest_model"),
	("/api/soil/", "soil_model"),
	("/api/ai/", "gemini"),
	("/api/alerts/", "alerts"),
	("/api/geo/", "geo"),
	("/api/fields", "fields"),
	("/api/user/", "fields"),
	("/field/", "fields"),
)

_MAX_REQUEST_ID_LENGTH = 128


def route_area(path: str) -> str:
	for prefix, area in _ROUTE_AREAS:
		if path.startswith(prefix):
			return area
	return "system"


def configure_structured_logging() -> None:
	"""Configure stdlib + structlog once per process."""
	global _configured
	if _configured:
		return

	settings = get_settings()
	log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

	shared_processors: list[Any] = [
		structlog.contextvars.merge_contextvars,
		structlog.processors.add_log_level,
		structlog.processors.TimeStamper(fmt="iso", utc=True),
	]

	if settings.log_format == LogFormat.json:
		renderer: Any = structlog.processors.JSONRenderer()
		logging.basicConfig(level=log_level, format="%(message)s")
	else:
		renderer = structlog.dev.ConsoleRenderer()
		logging.basicConfig(level=log_level)

	# httpx logs every outbound request at INFO, including Gemini URLs with the key.
	logging.getLogger("httpx").setLevel(logging.WARNING)

	structlog.configure(
		processors=[
			*shared_processors,
			structlog.processors.format_exc_info,
			renderer,
		],
		wrapper_class=structlog.make_filtering_bound_logger(log_level),
		logger_factory=structlog.PrintLoggerFactory(),
		cache_logger_on_first_use=True,
	)
	_configured = True


class RequestLoggingMiddleware(BaseHTTPMiddleware):
	"""Bind request id and route area to the log context; one access line per request.

	Server errors are logged at warning since upstream model failures surface
	as 500 responses.
	"""

	async def dispatch(self, request: Request, call_next):  # type: ignore[override]
		incoming_id = request.headers.get("x-request-id", "")[:_MAX_REQUEST_ID_LENGTH]
		request_id = incoming_id or str(uuid.uuid4())
		request.state.request_id = request_id
		path = request.url.path
		area = route_area(path)

		structlog.contextvars.clear_contextvars()
		structlog.contextvars.bind_contextvars(request_id=request_id, route_area=area)

		logger = structlog.get_logger("agrivision.request")
		start = time.perf_counter()

		try:
			response = await call_next(request)
		except Exception as exc:
			logger.exception(
				"http_request_failed",
				method=request.method,
				path=path,
				duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
				error=str(exc),
			)
			raise

		response.headers["x-request-id"] = request_id
		if response.status_code >= 500:
			log = logger.warning
		elif path in _QUIET_PATHS:
			log = logger.debug
		else:
			log = logger.info
		log(
			"http_request",
			method=request.method,
			path=path,
			status_code=response.status_code,
			duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
		)
		return response
