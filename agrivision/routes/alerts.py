"""Forecast alert routes, cached per user and field."""

from __future__ import annotations

from typing import Any

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status
from redis.asyncio import Redis

from agrivision.auth.dependencies import Session, get_session
from agrivision.clients import get_firestore, get_http_client, get_redis
from agrivision.schemas.alerts import AlertRefreshRequest, AlertsResponse, NotificationResult, NotifyRequest
from agrivision.services.alert_cache import AlertCache
from agrivision.services.field_service import FieldService, FirestoreUnavailableError
from agrivision.services.forecast_service import ForecastService
from agrivision.services.inference_proxy import UpstreamError
from agrivision.services.notification_service import NotificationService

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	if isinstance(exc, UpstreamError):
		return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
	if isinstance(exc, FirestoreUnavailableError):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Alert service failure")


async def _field_location(db: Any, user_id: str, field_id: str) -> tuple[float, float]:
	field = await FieldService(db).get_field(user_id, field_id)
	return field.lat, field.lng


@router.post("/notify", response_model=NotificationResult)
async def notify(
	payload: NotifyRequest,
	session: Session = Depends(get_session),
	db: Any = Depends(get_firestore),
	http_client: httpx.AsyncClient = Depends(get_http_client),
) -> NotificationResult:
	contact = session.contact()
	if db is not None:
		try:
			contact.update(await FieldService(db).get_profile(session.uid))
		except LookupError:
			pass
	return await NotificationService(http_client).send_field_alert(
		contact,
		payload.alert_type,
		payload.location,
		payload.message,
	)


@router.get("/{field_id}", response_model=AlertsResponse)
async def get_alerts(
	field_id: str,
	lat: float | None = Query(default=None, gt=-90, lt=90),
	lng: float | None = Query(default=None, ge=-180, le=180),
	session: Session = Depends(get_session),
	redis_client: Redis | None = Depends(get_redis),
	db: Any = Depends(get_firestore),
	http_client: httpx.AsyncClient = Depends(get_http_client),
) -> AlertsResponse:
	service = ForecastService(http_client, AlertCache(redis_client))
	try:
		if lat is not None and lng is not None:
			return await service.get_alerts(session.uid, field_id, lat, lng)
		cached = await service.cached_alerts(session.uid, field_id)
		if cached is not None:
			return cached
		lat, lng = await _field_location(db, session.uid, field_id)
		return await service.refresh_alerts(session.uid, field_id, lat, lng)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("/{field_id}/refresh", response_model=AlertsResponse)
async def refresh_alerts(
	field_id: str,
	payload: AlertRefreshRequest,
	session: Session = Depends(get_session),
	redis_client: Redis | None = Depends(get_redis),
	http_client: httpx.AsyncClient = Depends(get_http_client),
) -> AlertsResponse:
	service = ForecastService(http_client, AlertCache(redis_client))
	try:
		return await service.refresh_alerts(session.uid, field_id, payload.lat, payload.lng)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.delete("/{field_id}", status_code=status.HTTP_204_NO_CONTENT)
async def invalidate_alerts(
	field_id: str,
	session: Session = Depends(get_session),
	redis_client: Redis | None = Depends(get_redis),
) -> None:
	await AlertCache(redis_client).invalidate(session.uid, field_id)
