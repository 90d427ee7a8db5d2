"""Pydantic schemas for the vegetation-index analysis endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from agrivision.schemas.geo import HeatmapBounds, VegetationIndex


class NdviRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	lat: float = Field(gt=-90, lt=90)
	lng: float = Field(ge=-180, le=180)
	index_type: VegetationIndex = Field(default=VegetationIndex.NDVI, alias="indexType")
	radius: float = Field(default=1.0, gt=0, le=100)


class VegetationInferenceResult(BaseModel):
	"""Contract of the vegetation-index model's ``/predict`` response."""

	model_config = ConfigDict(extra="ignore")

	model_used: str
	heatmap_base64: str
	statistics: dict[str, Any] = Field(default_factory=dict)


class NdviResponse(BaseModel):
	success: bool = True
	model_used: str
	heatmap_base64: str
	statistics: dict[str, Any]
	bounds: HeatmapBounds
