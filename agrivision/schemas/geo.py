"""Pydantic schemas for coordinates, boxes, fields and legend lookups."""

from __future__ import annotations

import re
from datetime import datetime
from enum import StrEnum
from typing import Any, NamedTuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class VegetationIndex(StrEnum):
	NDVI = "NDVI"
	EVI = "EVI"
	SAVI = "SAVI"
	NDRE = "NDRE"


class LatLng(BaseModel):
	lat: float = Field(ge=-90, le=90)
	lng: float = Field(ge=-180, le=180)


class HeatmapBounds(BaseModel):
	"""WGS84 extent of a heatmap overlay, as the map client expects it."""

	model_config = ConfigDict(populate_by_name=True)

	min_lat: float = Field(alias="minLat")
	max_lat: float = Field(alias="maxLat")
	min_lng: float = Field(alias="minLng")
	max_lng: float = Field(alias="maxLng")


class BoundingBox(NamedTuple):
	"""Axis-aligned box in lng/lat order (x = longitude, y = latitude)."""

	min_x: float
	min_y: float
	max_x: float
	max_y: float

	def as_list(self) -> list[float]:
		return [self.min_x, self.min_y, self.max_x, self.max_y]

	def to_bounds(self) -> HeatmapBounds:
		return HeatmapBounds(
			min_lat=self.min_y,
			max_lat=self.max_y,
			min_lng=self.min_x,
			max_lng=self.max_x,
		)


class LegendBand(BaseModel):
	color: str
	label: str


class LegendMatchRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	index_type: VegetationIndex = Field(default=VegetationIndex.NDVI, alias="indexType")
	rgb: tuple[int, int, int]


class LegendMatchResponse(BaseModel):
	match: LegendBand | None = None
	distance: float | None = None


class PointInPolygonRequest(BaseModel):
	point: LatLng
	polygon: list[LatLng] = Field(min_length=3)


class PointInPolygonResponse(BaseModel):
	inside: bool


class ProcessRegionRequest(BaseModel):
	# Validated by hand so the route can answer with the legacy messages.
	polygon_coords: list[LatLng] | None = None
	user_id: str | None = Field(default=None, alias="userId")


class ProcessRegionResponse(BaseModel):
	message: str
	centroid: LatLng


class FieldCreate(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	id: str | None = Field(default=None, max_length=128)
	name: str = Field(min_length=1, max_length=255)
	coordinates: list[LatLng] = Field(min_length=3)
	crop_name: str | None = Field(default=None, alias="cropName")
	sowing_date: str | None = Field(default=None, alias="sowingDate")
	area: float | None = Field(default=None, ge=0)
	radius: float = Field(default=1.0, gt=0)
	indices: list[VegetationIndex] = Field(default_factory=lambda: [VegetationIndex.NDVI])


_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:\.\d+)?)")


class FieldRead(BaseModel):
	"""A stored field.

	Documents written by the map drawer use ``fieldName`` and keep the area as
	text such as ``"12.3 Acres"``; both shapes are accepted.
	"""

	model_config = ConfigDict(populate_by_name=True)

	id: str
	name: str = Field(validation_alias=AliasChoices("name", "fieldName"))
	lat: float
	lng: float
	coordinates: list[LatLng] = Field(default_factory=list)
	crop_name: str | None = Field(default=None, alias="cropName")
	sowing_date: str | None = Field(default=None, alias="sowingDate")
	area: float | None = None
	radius: float = 1.0
	indices: list[VegetationIndex] = Field(default_factory=list)
	created_at: datetime | None = Field(default=None, alias="createdAt")

	@field_validator("area", mode="before")
	@classmethod
	def _parse_area(cls, value: Any) -> Any:
		if isinstance(value, str):
			match = _LEADING_NUMBER.match(value)
			return float(match.group(1)) if match else None
		return value

	@field_validator("radius", mode="before")
	@classmethod
	def _default_radius(cls, value: Any) -> Any:
		return 1.0 if value is None else value


class FieldListRead(BaseModel):
	items: list[FieldRead]
