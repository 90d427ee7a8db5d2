"""Field and profile persistence in Firestore."""

from __future__ import annotations

import time
import uuid
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import ValidationError

from agrivision.schemas.geo import FieldCreate, FieldRead, LatLng
from agrivision.schemas.user import ProfileUpdate
from agrivision.services.geo import compute_centroid

logger = structlog.get_logger("agrivision.fields")


class FirestoreUnavailableError(RuntimeError):
	"""Raised when Firebase credentials were not configured at startup."""


class FieldDocumentError(RuntimeError):
	"""Raised when a stored field document cannot be read as a field."""


def _field_from_snapshot(snapshot: Any) -> FieldRead:
	data = snapshot.to_dict() or {}
	data.setdefault("id", snapshot.id)
	try:
		return FieldRead.model_validate(data)
	except ValidationError as exc:
		raise FieldDocumentError(f"Field document {snapshot.id} is malformed") from exc


def _created_sort_key(field: FieldRead) -> datetime:
	if field.created_at is None:
		return datetime.min.replace(tzinfo=UTC)
	if field.created_at.tzinfo is None:
		return field.created_at.replace(tzinfo=UTC)
	return field.created_at


class FieldService:
	"""Reads and writes ``users/{uid}``, ``users/{uid}/fields`` and ``fields/{uid}``."""

	def __init__(self, db: Any | None):
		self.db = db

	def _require_db(self) -> Any:
		if self.db is None:
			raise FirestoreUnavailableError("Firestore is not configured")
		return self.db

	async def save_centroid(self, user_id: str, centroid: LatLng) -> LatLng:
		db = self._require_db()
		await db.collection("fields").document(user_id).set(
			{
				"lat": centroid.lat,
				"lng": centroid.lng,
				"updatedAt": int(time.time() * 1000),
			},
			merge=True,
		)
		logger.info("centroid_saved", user_id=user_id)
		return centroid

	async def process_region(self, user_id: str, coords: list[LatLng]) -> LatLng:
		if len(coords) < 3:
			raise ValueError("Invalid polygon coordinates")
		return await self.save_centroid(user_id, compute_centroid(coords))

	async def save_field(self, user_id: str, payload: FieldCreate) -> FieldRead:
		db = self._require_db()
		centroid = compute_centroid(payload.coordinates)
		field = FieldRead(
			id=payload.id or uuid.uuid4().hex,
			name=payload.name,
			lat=centroid.lat,
			lng=centroid.lng,
			coordinates=payload.coordinates,
			crop_name=payload.crop_name,
			sowing_date=payload.sowing_date,
			area=payload.area,
			radius=payload.radius,
			indices=payload.indices,
			created_at=datetime.now(UTC),
		)
		document = db.collection("users").document(user_id).collection("fields").document(field.id)
		await document.set(field.model_dump(mode="json", by_alias=True))
		logger.info("field_saved", user_id=user_id, field_id=field.id)
		return field

	async def list_fields(self, user_id: str) -> list[FieldRead]:
		db = self._require_db()
		collection = db.collection("users").document(user_id).collection("fields")
		fields: list[FieldRead] = []
		async for snapshot in collection.stream():
			try:
				fields.append(_field_from_snapshot(snapshot))
			except FieldDocumentError as exc:
				logger.warning("field_document_skipped", user_id=user_id, field_id=snapshot.id, error=str(exc))
		fields.sort(key=_created_sort_key, reverse=True)
		return fields

	async def get_field(self, user_id: str, field_id: str) -> FieldRead:
		db = self._require_db()
		snapshot = await db.collection("users").document(user_id).collection("fields").document(field_id).get()
		if not snapshot.exists:
			raise LookupError(f"Field {field_id} not found")
		return _field_from_snapshot(snapshot)

	async def get_profile(self, user_id: str) -> dict[str, Any]:
		db = self._require_db()
		snapshot = await db.collection("users").document(user_id).get()
		if not snapshot.exists:
			raise LookupError(f"User {user_id} not found")
		return {"uid": user_id, **(snapshot.to_dict() or {})}

	async def update_profile(self, user_id: str, payload: ProfileUpdate) -> tuple[dict[str, Any], bool]:
		"""Merge the given profile fields; returns the profile and whether it was new."""
		db = self._require_db()
		document = db.collection("users").document(user_id)
		existing = await document.get()
		changes = payload.model_dump(exclude_none=True)
		changes["updatedAt"] = int(time.time() * 1000)
		await document.set(changes, merge=True)
		base = existing.to_dict() if existing.exists else {}
		return {"uid": user_id, **(base or {}), **changes}, not existing.exists
