from __future__ import annotations

import math

import pytest
from httpx import AsyncClient

from agrivision.schemas.geo import LatLng, VegetationIndex
from agrivision.services import geo

SQUARE = [
	{"lat": 0.0, "lng": 0.0},
	{"lat": 0.0, "lng": 4.0},
	{"lat": 4.0, "lng": 4.0},
	{"lat": 4.0, "lng": 0.0},
]


def test_centroid_is_vertex_mean_for_asymmetric_triangle() -> None:
	triangle = [LatLng(lat=0, lng=0), LatLng(lat=0, lng=6), LatLng(lat=3, lng=0)]
	centroid = geo.compute_centroid(triangle)
	assert centroid.lat == pytest.approx(1.0)
	assert centroid.lng == pytest.approx(2.0)


def test_centroid_ignores_vertex_density() -> None:
	# Extra vertices along one edge pull the vertex mean, unlike an area centroid.
	polygon = [*SQUARE, {"lat": 0.0, "lng": 1.0}, {"lat": 0.0, "lng": 2.0}, {"lat": 0.0, "lng": 3.0}]
	centroid = geo.compute_centroid(polygon)
	assert centroid.lat == pytest.approx(8.0 / 7.0)
	assert centroid.lng == pytest.approx(14.0 / 7.0)


def test_centroid_rejects_empty_polygon() -> None:
	with pytest.raises(ValueError):
		geo.compute_centroid([])


def test_bounding_box_at_equator_is_symmetric() -> None:
	bbox = geo.compute_bounding_box(0.0, 0.0, 2.0)
	half = 1.0 / 111.0
	assert bbox.min_x == pytest.approx(-half)
	assert bbox.max_x == pytest.approx(half)
	assert bbox.min_y == pytest.approx(-half)
	assert bbox.max_y == pytest.approx(half)
	assert bbox.as_list() == [bbox.min_x, bbox.min_y, bbox.max_x, bbox.max_y]


def test_bounding_box_longitude_span_widens_with_latitude() -> None:
	bbox = geo.compute_bounding_box(60.0, 10.0, 2.0)
	lat_half = (bbox.max_y - bbox.min_y) / 2
	lng_half = (bbox.max_x - bbox.min_x) / 2
	assert lng_half == pytest.approx(2 * lat_half)
	assert (bbox.min_x + bbox.max_x) / 2 == pytest.approx(10.0)


@pytest.mark.parametrize("lat", [90.0, -90.0, 91.0])
def test_bounding_box_rejects_polar_latitudes(lat: float) -> None:
	with pytest.raises(ValueError):
		geo.compute_bounding_box(lat, 0.0, 1.0)


def test_bounding_box_wire_bounds() -> None:
	bounds = geo.compute_bounding_box(10.0, 20.0, 1.0).to_bounds()
	dumped = bounds.model_dump(by_alias=True)
	assert set(dumped) == {"minLat", "maxLat", "minLng", "maxLng"}
	assert dumped["minLat"] < 10.0 < dumped["maxLat"]
	assert dumped["minLng"] < 20.0 < dumped["maxLng"]


def test_polygon_bounds() -> None:
	bounds = geo.polygon_bounds(SQUARE)
	assert (bounds.min_lat, bounds.max_lat, bounds.min_lng, bounds.max_lng) == (0.0, 4.0, 0.0, 4.0)


def test_point_in_polygon_inside_outside_and_vertex() -> None:
	assert geo.point_in_polygon({"lat": 2.0, "lng": 2.0}, SQUARE) is True
	assert geo.point_in_polygon({"lat": 5.0, "lng": 2.0}, SQUARE) is False
	assert geo.point_in_polygon({"lat": 2.0, "lng": -1.0}, SQUARE) is False
	assert geo.point_in_polygon({"lat": 4.0, "lng": 4.0}, SQUARE) is False


def test_point_in_polygon_concave_notch() -> None:
	# U shape: the notch between the arms is outside.
	u_shape = [
		{"lat": 0, "lng": 0},
		{"lat": 0, "lng": 3},
		{"lat": 3, "lng": 3},
		{"lat": 3, "lng": 2},
		{"lat": 1, "lng": 2},
		{"lat": 1, "lng": 1},
		{"lat": 3, "lng": 1},
		{"lat": 3, "lng": 0},
	]
	assert geo.point_in_polygon({"lat": 2.0, "lng": 1.5}, u_shape) is False
	assert geo.point_in_polygon({"lat": 2.0, "lng": 0.5}, u_shape) is True
	assert geo.point_in_polygon({"lat": 0.5, "lng": 1.5}, u_shape) is True


def test_point_in_polygon_needs_three_vertices() -> None:
	assert geo.point_in_polygon({"lat": 0.5, "lng": 0.5}, SQUARE[:2]) is False


def test_legend_match_within_threshold() -> None:
	band, distance = geo.closest_legend_band((26, 150, 65), geo.LEGENDS[VegetationIndex.NDVI])
	assert band is not None
	assert band.color == "#1a9641"
	assert distance == pytest.approx(0.0)


def test_legend_match_rejects_distant_colour() -> None:
	band, distance = geo.closest_legend_band((0, 0, 255), geo.LEGENDS[VegetationIndex.NDVI])
	assert band is None
	assert distance is not None and distance >= geo.LEGEND_MATCH_THRESHOLD


def test_legend_threshold_is_exclusive() -> None:
	bands = [geo.LEGENDS[VegetationIndex.NDVI][0]]
	red = geo.hex_to_rgb(bands[0].color)
	sample = (red[0], red[1], red[2] + 150)
	band, distance = geo.closest_legend_band(sample, bands)
	assert distance == pytest.approx(150.0)
	assert band is None


def test_color_distance_is_euclidean() -> None:
	assert geo.color_distance((0, 0, 0), (3, 4, 0)) == pytest.approx(5.0)
	assert geo.hex_to_rgb("#d7191c") == (215, 25, 28)
	with pytest.raises(ValueError):
		geo.hex_to_rgb("#fff")


@pytest.mark.parametrize(
	("ndvi", "expected"),
	[
		(-1.0, (100, "High risk - Action needed")),
		(0.15, (80, "High risk - Action needed")),
		(0.25, (60, "High risk - Action needed")),
		(0.325, (45, "Moderate risk")),
		(0.7, (15, "Low risk")),
		(1.0, (0, "No disease detected")),
	],
)
def test_disease_risk_from_ndvi(ndvi: float, expected: tuple[int, str]) -> None:
	assert geo.disease_risk_from_ndvi(ndvi) == expected


def test_disease_risk_is_clamped() -> None:
	percentage, _ = geo.disease_risk_from_ndvi(-5.0)
	assert percentage == 100
	assert not math.isnan(percentage)


@pytest.mark.asyncio
async def test_legend_match_endpoint(client: AsyncClient) -> None:
	response = await client.post("/api/geo/legend-match", json={"indexType": "NDRE", "rgb": [189, 189, 189]})
	assert response.status_code == 200
	body = response.json()
	assert body["match"] == {"color": "#bdbdbd", "label": "-1 to 0.02"}
	assert body["distance"] == pytest.approx(0.0)


@pytest.mark.asyncio
async def test_point_in_polygon_endpoint(client: AsyncClient) -> None:
	response = await client.post(
		"/api/geo/point-in-polygon",
		json={"point": {"lat": 2, "lng": 2}, "polygon": SQUARE},
	)
	assert response.status_code == 200
	assert response.json() == {"inside": True}
