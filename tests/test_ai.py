from __future__ import annotations

import json

import httpx
import pytest
from httpx import AsyncClient

from agrivision.services.gemini_client import GeminiError, extract_candidate_text

GEMINI_URL = "https://gemini.test/v1beta/models/gemini-2.5-flash:generateContent"


def test_extract_candidate_text_shapes() -> None:
	assert extract_candidate_text({"candidates": [{"content": {"parts": [{"text": "hi"}]}}]}) == "hi"
	assert extract_candidate_text({"candidates": [{"output": "legacy"}]}) == "legacy"
	assert extract_candidate_text({"candidates": []}) is None
	assert extract_candidate_text({}) is None


def test_gemini_error_keeps_status() -> None:
	exc = GeminiError("quota", status_code=429)
	assert exc.message == "quota"
	assert exc.status_code == 429


@pytest.mark.asyncio
async def test_generate_returns_trimmed_text(client: AsyncClient, upstream) -> None:
	upstream.add_json(
		GEMINI_URL,
		{"candidates": [{"content": {"parts": [{"text": "  1. Test the soil pH first.\n"}]}}]},
	)

	response = await client.post("/api/ai/generate", json={"message": "My wheat leaves are yellow"})

	assert response.status_code == 200
	assert response.json() == {"response": "1. Test the soil pH first."}
	call = upstream.calls[0]
	assert call.url.params["key"] == "chat-key"
	body = json.loads(call.content)
	assert "My wheat leaves are yellow" in body["contents"][0]["parts"][0]["text"]
	assert body["generationConfig"] == {"temperature": 0.7, "topK": 40, "topP": 0.95, "maxOutputTokens": 1024}


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"message": ""}])
async def test_generate_requires_message(client: AsyncClient, upstream, payload: dict) -> None:
	response = await client.post("/api/ai/generate", json=payload)
	assert response.status_code == 400
	assert "error" in response.json()
	assert upstream.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
	("upstream_response", "expected"),
	[
		(
			httpx.Response(200, text="<html>busy</html>"),
			"API Error: Gemini service returned a non-JSON response. Please try again later.",
		),
		(
			httpx.Response(400, json={"error": {"message": "API key not valid"}}),
			"API Error: API key not valid",
		),
		(httpx.Response(200, text='{"candidates": []}'), 'API Error: {"candidates": []}'),
		(httpx.Response(503, text=""), "API Error: HTTP 503"),
	],
)
async def test_generate_maps_upstream_errors(
	client: AsyncClient, upstream, upstream_response: httpx.Response, expected: str
) -> None:
	upstream.add(GEMINI_URL, lambda _request: upstream_response)

	response = await client.post("/api/ai/generate", json={"message": "hello"})

	assert response.status_code == 500
	assert response.json() == {"error": expected}


@pytest.mark.asyncio
async def test_generate_transport_failure(client: AsyncClient) -> None:
	response = await client.post("/api/ai/generate", json={"message": "hello"})
	assert response.status_code == 500
	assert response.json() == {"error": "Failed to generate AI response"}
