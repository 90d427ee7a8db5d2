"""Image and soil model proxy routes."""

from __future__ import annotations

from typing import Any

import httpx
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse

from agrivision.clients import get_http_client
from agrivision.schemas.inference import SoilAnalysisRequest
from agrivision.services.inference_proxy import InferenceProxy, UpstreamError

router = APIRouter(prefix="/api", tags=["inference"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, UpstreamError):
		return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Proxy server error")


async def _read_upload(file: UploadFile | None) -> bytes:
	content = await file.read() if file is not None else b""
	if not content:
		raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image file is required")
	return content


@router.post("/disease/predict")
async def predict_disease(
	file: UploadFile | None = File(default=None),
	http_client: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
	content = await _read_upload(file)
	try:
		reply = await InferenceProxy(http_client).predict_disease(file.filename, content, file.content_type)
	except Exception as exc:
		raise _map_error(exc) from exc
	return JSONResponse(status_code=reply.status_code, content=reply.payload)


@router.post("/pest/predict")
async def predict_pest(
	file: UploadFile | None = File(default=None),
	http_client: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
	content = await _read_upload(file)
	try:
		reply = await InferenceProxy(http_client).predict_pest(file.filename, content, file.content_type)
	except Exception as exc:
		raise _map_error(exc) from exc
	return JSONResponse(status_code=reply.status_code, content=reply.payload)


@router.post("/soil/analyze")
async def analyze_soil(
	payload: SoilAnalysisRequest,
	http_client: httpx.AsyncClient = Depends(get_http_client),
) -> dict[str, Any]:
	try:
		return await InferenceProxy(http_client).analyze_soil(payload.code)
	except Exception as exc:
		raise _map_error(exc) from exc
