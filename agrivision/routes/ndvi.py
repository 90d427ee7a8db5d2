"""Vegetation-index analysis route."""

from __future__ import annotations

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from agrivision.clients import get_http_client
from agrivision.schemas.ndvi import NdviRequest, NdviResponse
from agrivision.services.ndvi_service import NdviPipelineError, NdviService

router = APIRouter(prefix="/api", tags=["ndvi"])
logger = structlog.get_logger("agrivision.ndvi")


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, NdviPipelineError):
		return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail=str(exc) or "Processing failed",
	)


@router.post("/analyze-ndvi", response_model=NdviResponse)
async def analyze_ndvi(
	payload: NdviRequest,
	http_client: httpx.AsyncClient = Depends(get_http_client),
) -> NdviResponse:
	try:
		return await NdviService(http_client).analyze(payload)
	except Exception as exc:
		if isinstance(exc, NdviPipelineError):
			logger.warning("ndvi_analysis_failed", step=exc.step, error=exc.message)
		raise _map_error(exc) from exc
