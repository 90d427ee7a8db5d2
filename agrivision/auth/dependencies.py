"""Session dependency: Firebase ID token in, explicit ``Session`` out."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth
from firebase_admin.exceptions import FirebaseError

logger = structlog.get_logger("agrivision.auth")

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(slots=True)
class AuthError(Exception):
	"""Structured authentication error for consistent mapping at the edge."""

	code: str
	detail: str
	status_code: int = 401


@dataclass(slots=True, frozen=True)
class Session:
	uid: str
	email: str | None = None
	name: str | None = None

	def contact(self) -> dict[str, Any]:
		return {"name": self.name, "email": self.email}


def _raise_auth(exc: AuthError) -> HTTPException:
	return HTTPException(status_code=exc.status_code, detail=exc.detail)


async def verify_id_token(token: str) -> Session:
	"""Verify a Firebase ID token; raises ``AuthError`` when it is not usable.

	Verification may fetch Google signing certificates, so it runs off the event loop.
	"""
	try:
		claims = await asyncio.to_thread(firebase_auth.verify_id_token, token)
	except (ValueError, FirebaseError) as exc:
		raise AuthError(code="token_invalid", detail="Invalid token") from exc

	uid = claims.get("uid") or claims.get("sub")
	if not isinstance(uid, str) or not uid:
		raise AuthError(code="token_invalid", detail="Invalid token")
	return Session(uid=uid, email=claims.get("email"), name=claims.get("name"))


async def get_session(request: Request) -> Session:
	credentials: HTTPAuthorizationCredentials | None = await bearer_scheme(request)
	if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
		raise _raise_auth(AuthError(code="auth_required", detail="No token provided"))

	try:
		return await verify_id_token(credentials.credentials)
	except AuthError as exc:
		logger.info("session_rejected", code=exc.code)
		raise _raise_auth(exc) from exc
