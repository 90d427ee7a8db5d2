"""Geospatial helpers for centroids, imagery boxes, hit-testing and legend colours.

All functions are pure. Coordinates are WGS84 degrees; boxes are lng/lat ordered
to match the imagery provider's ``bbox`` parameter.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from agrivision.schemas.geo import BoundingBox, HeatmapBounds, LatLng, LegendBand, VegetationIndex

LAT_DEGREE_KM = 111.0
LEGEND_MATCH_THRESHOLD = 150.0

_RED_GREEN_BANDS = (
	LegendBand(color="#d7191c", label="-1 to 0.15"),
	LegendBand(color="#fdae61", label="0.15 to 0.25"),
	LegendBand(color="#a6d96a", label="0.25 to 0.40"),
	LegendBand(color="#1a9641", label="> 0.40"),
)

LEGENDS: dict[VegetationIndex, tuple[LegendBand, ...]] = {
	VegetationIndex.NDVI: _RED_GREEN_BANDS,
	VegetationIndex.SAVI: _RED_GREEN_BANDS,
	VegetationIndex.EVI: (
		LegendBand(color="#d7191c", label="-1 to 0.20"),
		LegendBand(color="#fdae61", label="0.20 to 0.35"),
		LegendBand(color="#a6d96a", label="0.35 to 0.50"),
		LegendBand(color="#1a9641", label="> 0.50"),
	),
	VegetationIndex.NDRE: (
		LegendBand(color="#bdbdbd", label="-1 to 0.02"),
		LegendBand(color="#b2ff59", label="0.02 to 0.12"),
		LegendBand(color="#1b8a3c", label="0.12 to 0.22"),
		LegendBand(color="#c49a00", label="> 0.22"),
	),
}


def _lat_lng(point: Any) -> tuple[float, float]:
	if isinstance(point, Mapping):
		return float(point["lat"]), float(point["lng"])
	return float(point.lat), float(point.lng)


def compute_centroid(coords: Sequence[Any]) -> LatLng:
	"""Arithmetic mean of the vertices.

	This is not the area-weighted centroid: for irregular polygons the two
	differ, and callers rely on the vertex mean.
	"""
	if not coords:
		raise ValueError("cannot compute the centroid of an empty polygon")

	lat_sum = 0.0
	lng_sum = 0.0
	for point in coords:
		lat, lng = _lat_lng(point)
		lat_sum += lat
		lng_sum += lng
	return LatLng(lat=lat_sum / len(coords), lng=lng_sum / len(coords))


def compute_bounding_box(lat: float, lng: float, radius_km: float) -> BoundingBox:
	"""Square box of side ``radius_km`` centred on ``(lat, lng)``."""
	if abs(lat) >= 90:
		raise ValueError("latitude must be strictly between -90 and 90")

	lng_degree_km = LAT_DEGREE_KM * math.cos(math.radians(lat))
	r_lat = (radius_km / 2) / LAT_DEGREE_KM
	r_lng = (radius_km / 2) / lng_degree_km
	return BoundingBox(lng - r_lng, lat - r_lat, lng + r_lng, lat + r_lat)


def polygon_bounds(coords: Sequence[Any]) -> HeatmapBounds:
	if not coords:
		raise ValueError("cannot compute the bounds of an empty polygon")
	points = [_lat_lng(point) for point in coords]
	lats = [lat for lat, _ in points]
	lngs = [lng for _, lng in points]
	return HeatmapBounds(min_lat=min(lats), max_lat=max(lats), min_lng=min(lngs), max_lng=max(lngs))


def point_in_polygon(point: Any, polygon: Sequence[Any]) -> bool:
	"""Even-odd ray casting. Boundary points (vertices included) count as outside."""
	y, x = _lat_lng(point)
	n = len(polygon)
	if n < 3:
		return False

	inside = False
	yj, xj = _lat_lng(polygon[n - 1])
	for i in range(n):
		yi, xi = _lat_lng(polygon[i])
		if (xi == x and yi == y) or (xj == x and yj == y):
			return False
		if (yi > y) != (yj > y):
			x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
			if x == x_cross:
				return False
			if x < x_cross:
				inside = not inside
		xj, yj = xi, yi
	return inside


def hex_to_rgb(color: str) -> tuple[int, int, int]:
	token = color.lstrip("#")
	if len(token) != 6:
		raise ValueError(f"expected a #rrggbb colour, got {color!r}")
	return int(token[0:2], 16), int(token[2:4], 16), int(token[4:6], 16)


def color_distance(a: Sequence[int], b: Sequence[int]) -> float:
	return math.sqrt((a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2 + (a[2] - b[2]) ** 2)


def closest_legend_band(
	rgb: Sequence[int],
	bands: Sequence[LegendBand],
	threshold: float = LEGEND_MATCH_THRESHOLD,
) -> tuple[LegendBand | None, float | None]:
	"""Nearest legend band to a sampled pixel, or ``None`` past the threshold."""
	best: LegendBand | None = None
	best_distance: float | None = None
	for band in bands:
		distance = color_distance(rgb, hex_to_rgb(band.color))
		if best_distance is None or distance < best_distance:
			best, best_distance = band, distance

	if best_distance is None or best_distance >= threshold:
		return None, best_distance
	return best, best_distance


def _round_half_up(value: float) -> int:
	return math.floor(value + 0.5)


def disease_risk_from_ndvi(ndvi: float) -> tuple[int, str]:
	"""Dashboard disease-risk estimate from a day-1 NDVI forecast.

	Piecewise-linear bands follow the NDVI legend breakpoints. The numbers are
	product rules awaiting agronomist review and are kept as-is.
	"""
	if ndvi < 0.15:
		percentage = _round_half_up(100 - ((ndvi + 1) / 1.15) * 20)
	elif ndvi < 0.25:
		percentage = _round_half_up(80 - ((ndvi - 0.15) / 0.1) * 20)
	elif ndvi < 0.40:
		percentage = _round_half_up(60 - ((ndvi - 0.25) / 0.15) * 30)
	else:
		percentage = _round_half_up(max(0.0, 30 - ((ndvi - 0.40) / 0.6) * 30))
	percentage = max(0, min(100, percentage))

	if percentage == 0:
		status = "No disease detected"
	elif percentage < 30:
		status = "Low risk"
	elif percentage < 60:
		status = "Moderate risk"
	else:
		status = "High risk - Action needed"
	return percentage, status
