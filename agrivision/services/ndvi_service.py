"""Vegetation-index pipeline: Sentinel Hub imagery fed to the index model.

The chain is strictly sequential: token, then imagery, then inference. Any
failing step raises ``NdviPipelineError`` and later steps are not attempted.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from agrivision.config import Settings, get_settings
from agrivision.schemas.geo import BoundingBox
from agrivision.schemas.ndvi import NdviRequest, NdviResponse, VegetationInferenceResult
from agrivision.services.geo import compute_bounding_box

logger = structlog.get_logger("agrivision.ndvi")

# Band order is what the index model's TIFF reader expects:
# 0 Blue, 1 Green, 2 Red, 3 Red Edge, 4 NIR, 5 SWIR.
EVALSCRIPT = """
//VERSION=3
function setup() {
  return {
    input: [{
      bands: ["B02", "B03", "B04", "B05", "B08", "B11"],
      units: "DN"
    }],
    output: {
      bands: 6,
      sampleType: "UINT16"
    }
  };
}

function evaluatePixel(sample) {
  return [sample.B02, sample.B03, sample.B04, sample.B05, sample.B08, sample.B11];
}
"""

IMAGE_SIZE_PX = 256
TIFF_FILENAME = "sentinel_5band.tiff"
WGS84_CRS = "http://www.opengis.net/def/crs/EPSG/0/4326"


class NdviPipelineError(Exception):
	def __init__(self, message: str, *, step: str):
		super().__init__(message)
		self.message = message
		self.step = step


def describe_upstream_error(response: httpx.Response) -> str:
	"""Best-effort text for an upstream error body (JSON, text or binary)."""
	content = response.content
	try:
		return json.dumps(response.json())
	except ValueError:
		pass
	try:
		return content.decode("utf-8")
	except UnicodeDecodeError:
		return "Unknown Binary Error"


def build_process_request(bbox: BoundingBox, now: datetime, lookback_days: int) -> dict[str, Any]:
	start = now - timedelta(days=lookback_days)
	return {
		"input": {
			"bounds": {"bbox": bbox.as_list(), "properties": {"crs": WGS84_CRS}},
			"data": [
				{
					"type": "sentinel-2-l1c",
					"dataFilter": {
						"timeRange": {
							"from": start.isoformat().replace("+00:00", "Z"),
							"to": now.isoformat().replace("+00:00", "Z"),
						},
						"mosaickingOrder": "leastCC",
					},
				}
			],
		},
		"output": {
			"width": IMAGE_SIZE_PX,
			"height": IMAGE_SIZE_PX,
			"responses": [{"identifier": "default", "format": {"type": "image/tiff"}}],
		},
		"evalscript": EVALSCRIPT,
	}


class NdviService:
	def __init__(self, http_client: httpx.AsyncClient, settings: Settings | None = None):
		self.http = http_client
		self.settings = settings or get_settings()

	async def analyze(self, payload: NdviRequest) -> NdviResponse:
		model_type = payload.index_type.value.lower()
		logger.info(
			"ndvi_analysis_started",
			index_type=payload.index_type.value,
			lat=payload.lat,
			lng=payload.lng,
			radius_km=payload.radius,
		)

		token = await self.fetch_token()
		bbox = compute_bounding_box(payload.lat, payload.lng, payload.radius)
		tiff = await self.fetch_imagery(token, bbox)
		result = await self.run_inference(tiff, model_type)

		logger.info("ndvi_analysis_complete", model_used=result.model_used)
		return NdviResponse(
			model_used=result.model_used,
			heatmap_base64=result.heatmap_base64,
			statistics=result.statistics,
			bounds=bbox.to_bounds(),
		)

	async def fetch_token(self) -> str:
		if not self.settings.sentinel_client_id or not self.settings.sentinel_client_secret:
			raise NdviPipelineError("Sentinel Hub credentials are not configured", step="token")

		data = {
			"grant_type": "client_credentials",
			"client_id": self.settings.sentinel_client_id,
			"client_secret": self.settings.sentinel_client_secret,
		}
		response = await self._send("token", "POST", self.settings.sentinel_token_url, data=data)
		try:
			token = response.json()["access_token"]
		except (ValueError, KeyError, TypeError) as exc:
			raise NdviPipelineError("Token response did not contain an access token", step="token") from exc
		if not isinstance(token, str) or not token:
			raise NdviPipelineError("Token response did not contain an access token", step="token")
		return token

	async def fetch_imagery(self, token: str, bbox: BoundingBox) -> bytes:
		body = build_process_request(bbox, datetime.now(UTC), self.settings.sentinel_lookback_days)
		headers = {
			"Authorization": f"Bearer {token}",
			"Content-Type": "application/json",
			"Accept": "image/tiff",
		}
		response = await self._send("imagery", "POST", self.settings.sentinel_process_url, json=body, headers=headers)
		if not response.content:
			raise NdviPipelineError("Imagery response was empty", step="imagery")
		return response.content

	async def run_inference(self, tiff: bytes, model_type: str) -> VegetationInferenceResult:
		url = f"{self.settings.vegetation_model_url.rstrip('/')}/predict"
		files = {"file": (TIFF_FILENAME, tiff, "image/tiff")}
		response = await self._send("inference", "POST", url, params={"model_type": model_type}, files=files)
		try:
			return VegetationInferenceResult.model_validate(response.json())
		except (ValueError, ValidationError) as exc:
			raise NdviPipelineError(f"Unexpected inference response: {exc}", step="inference") from exc

	async def _send(self, step: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
		try:
			response = await self.http.request(method, url, **kwargs)
		except httpx.HTTPError as exc:
			logger.error("ndvi_step_failed", step=step, error=str(exc))
			raise NdviPipelineError(str(exc) or exc.__class__.__name__, step=step) from exc

		if not response.is_success:
			detail = describe_upstream_error(response)
			logger.error("ndvi_step_failed", step=step, status_code=response.status_code, detail=detail)
			raise NdviPipelineError(f"External API Error: {detail}", step=step)
		return response
