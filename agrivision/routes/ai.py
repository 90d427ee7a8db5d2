"""Generative-language routes for chat and alert descriptions."""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, HTTPException, status

from agrivision.clients import get_http_client
from agrivision.schemas.ai import (
	AdvisoryDescriptionRequest,
	AdvisoryDescriptionResponse,
	DescriptionRequest,
	DescriptionResponse,
	GenerateRequest,
	GenerateResponse,
)
from agrivision.services.chat_service import ChatService
from agrivision.services.description_service import DescriptionService
from agrivision.services.gemini_client import GeminiError

router = APIRouter(prefix="/api/ai", tags=["ai"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, GeminiError):
		return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"API Error: {exc.message}")
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Failed to generate AI response",
	)


@router.post("/generate", response_model=GenerateResponse)
async def generate(
	payload: GenerateRequest,
	http_client: httpx.AsyncClient = Depends(get_http_client),
) -> GenerateResponse:
	try:
		text = await ChatService(http_client).reply(payload.message)
	except Exception as exc:
		raise _map_error(exc) from exc
	return GenerateResponse(response=text)


@router.post("/alert-descriptions", response_model=DescriptionResponse)
async def alert_descriptions(
	payload: DescriptionRequest,
	http_client: httpx.AsyncClient = Depends(get_http_client),
) -> DescriptionResponse:
	try:
		descriptions = await DescriptionService(http_client).describe_all(payload.metrics)
	except Exception as exc:
		raise HTTPException(
			status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
			detail="Failed to generate descriptions",
		) from exc
	return DescriptionResponse(descriptions=descriptions, field_id=payload.field_id)


@router.post("/advisory-descriptions", response_model=AdvisoryDescriptionResponse)
async def advisory_descriptions(
	payload: AdvisoryDescriptionRequest,
	http_client: httpx.AsyncClient = Depends(get_http_client),
) -> AdvisoryDescriptionResponse:
	try:
		descriptions = await DescriptionService(http_client).describe_actions(payload.actions, payload.metrics)
	except Exception as exc:
		raise HTTPException(
			status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
			detail="Failed to generate descriptions",
		) from exc
	return AdvisoryDescriptionResponse(descriptions=descriptions)
