"""Process-wide external clients: the shared HTTP client, Redis and Firebase.

Clients are created in the application lifespan and stored on ``app.state``;
routes reach them through the ``get_*`` dependencies below so tests can
override them.
"""

from __future__ import annotations

from typing import Any

import firebase_admin
import httpx
import structlog
from fastapi import HTTPException, Request, status
from firebase_admin import credentials, firestore_async
from redis.asyncio import Redis

from agrivision.config import Settings

logger = structlog.get_logger("agrivision.clients")

_FIREBASE_TOKEN_URI = "https://oauth2.googleapis.com/token"


def create_http_client(settings: Settings) -> httpx.AsyncClient:
	return httpx.AsyncClient(
		timeout=httpx.Timeout(settings.upstream_timeout_seconds),
		follow_redirects=True,
	)


def create_redis(settings: Settings) -> Redis:
	return Redis.from_url(settings.redis_url, decode_responses=True)


def init_firebase(settings: Settings) -> firebase_admin.App | None:
	"""Initialise the default Firebase app from service-account env vars."""
	if not settings.firebase_configured:
		logger.warning("firebase_not_configured")
		return None
	try:
		return firebase_admin.get_app()
	except ValueError:
		pass

	cred = credentials.Certificate(
		{
			"type": "service_account",
			"project_id": settings.firebase_project_id,
			"private_key": settings.firebase_private_key_pem,
			"client_email": settings.firebase_client_email,
			"token_uri": _FIREBASE_TOKEN_URI,
		}
	)
	app = firebase_admin.initialize_app(cred, {"projectId": settings.firebase_project_id})
	logger.info("firebase_initialized", project_id=settings.firebase_project_id)
	return app


def create_firestore(firebase_app: firebase_admin.App | None) -> Any | None:
	if firebase_app is None:
		return None
	return firestore_async.client(firebase_app)


async def get_http_client(request: Request) -> httpx.AsyncClient:
	client = getattr(request.app.state, "http_client", None)
	if client is None:
		raise HTTPException(
			status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
			detail="HTTP client is not initialised",
		)
	return client


async def get_redis(request: Request) -> Redis | None:
	return getattr(request.app.state, "redis", None)


async def get_firestore(request: Request) -> Any | None:
	return getattr(request.app.state, "firestore", None)
