"""Field geometry, persistence and profile routes."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from agrivision.auth.dependencies import Session, get_session
from agrivision.clients import get_firestore, get_http_client
from agrivision.schemas.geo import (
	FieldCreate,
	FieldListRead,
	FieldRead,
	LegendMatchRequest,
	LegendMatchResponse,
	PointInPolygonRequest,
	PointInPolygonResponse,
	ProcessRegionRequest,
	ProcessRegionResponse,
)
from agrivision.schemas.user import ProfileRead, ProfileUpdate, ProfileUpdateResponse
from agrivision.services import geo
from agrivision.services.field_service import FieldService, FirestoreUnavailableError
from agrivision.services.notification_service import NotificationService

router = APIRouter(tags=["fields"])
logger = structlog.get_logger("agrivision.fields")


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	if isinstance(exc, FirestoreUnavailableError):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")


@router.post("/field/process-region", response_model=ProcessRegionResponse)
async def process_region(
	payload: ProcessRegionRequest,
	db: Any = Depends(get_firestore),
) -> ProcessRegionResponse:
	if not payload.polygon_coords or len(payload.polygon_coords) < 3:
		raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid polygon coordinates")
	if not payload.user_id:
		raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing userId")

	try:
		centroid = await FieldService(db).process_region(payload.user_id, payload.polygon_coords)
	except Exception as exc:
		logger.exception("process_region_failed", user_id=payload.user_id)
		raise HTTPException(
			status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
			detail="Server error",
		) from exc
	return ProcessRegionResponse(message="Centroid saved successfully", centroid=centroid)


@router.post("/api/fields", response_model=FieldRead, status_code=status.HTTP_201_CREATED)
async def create_field(
	payload: FieldCreate,
	background_tasks: BackgroundTasks,
	session: Session = Depends(get_session),
	db: Any = Depends(get_firestore),
	http_client: httpx.AsyncClient = Depends(get_http_client),
) -> FieldRead:
	try:
		field = await FieldService(db).save_field(session.uid, payload)
	except Exception as exc:
		raise _map_error(exc) from exc

	notifier = NotificationService(http_client)
	indices = [index.value for index in field.indices]
	background_tasks.add_task(notifier.send_field_added, session.contact(), indices, field.name)
	return field


@router.get("/api/fields", response_model=FieldListRead)
async def list_fields(
	session: Session = Depends(get_session),
	db: Any = Depends(get_firestore),
) -> FieldListRead:
	try:
		return FieldListRead(items=await FieldService(db).list_fields(session.uid))
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/api/user/profile", response_model=ProfileRead)
async def get_profile(
	session: Session = Depends(get_session),
	db: Any = Depends(get_firestore),
) -> ProfileRead:
	try:
		profile = await FieldService(db).get_profile(session.uid)
	except Exception as exc:
		raise _map_error(exc) from exc
	return ProfileRead.model_validate({"email": session.email, **profile})


@router.put("/api/user/update", response_model=ProfileUpdateResponse)
async def update_profile(
	payload: ProfileUpdate,
	background_tasks: BackgroundTasks,
	session: Session = Depends(get_session),
	db: Any = Depends(get_firestore),
	http_client: httpx.AsyncClient = Depends(get_http_client),
) -> ProfileUpdateResponse:
	try:
		profile, created = await FieldService(db).update_profile(session.uid, payload)
	except Exception as exc:
		raise _map_error(exc) from exc

	if created:
		contact = {**session.contact(), **profile}
		background_tasks.add_task(NotificationService(http_client).send_welcome, contact)
	return ProfileUpdateResponse(profile=profile)


@router.post("/api/geo/legend-match", response_model=LegendMatchResponse)
async def legend_match(payload: LegendMatchRequest) -> LegendMatchResponse:
	band, distance = geo.closest_legend_band(payload.rgb, geo.LEGENDS[payload.index_type])
	return LegendMatchResponse(match=band, distance=distance)


@router.post("/api/geo/point-in-polygon", response_model=PointInPolygonResponse)
async def point_in_polygon(payload: PointInPolygonRequest) -> PointInPolygonResponse:
	return PointInPolygonResponse(inside=geo.point_in_polygon(payload.point, payload.polygon))
