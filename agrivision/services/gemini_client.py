"""Thin async client for Gemini ``generateContent``."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx

from agrivision.config import Settings, get_settings


@dataclass(slots=True)
class GenerationConfig:
	temperature: float
	max_output_tokens: int
	top_k: int = 40
	top_p: float = 0.95

	def as_payload(self) -> dict[str, Any]:
		return {
			"temperature": self.temperature,
			"topK": self.top_k,
			"topP": self.top_p,
			"maxOutputTokens": self.max_output_tokens,
		}


CHAT_GENERATION = GenerationConfig(temperature=0.7, max_output_tokens=1024)
DESCRIPTION_GENERATION = GenerationConfig(temperature=0.5, max_output_tokens=180)


class GeminiError(Exception):
	"""Gemini returned something unusable; ``message`` is client-safe."""

	def __init__(self, message: str, status_code: int | None = None):
		super().__init__(message)
		self.message = message
		self.status_code = status_code


def extract_candidate_text(payload: dict[str, Any]) -> str | None:
	candidates = payload.get("candidates")
	if not isinstance(candidates, list) or not candidates:
		return None
	candidate = candidates[0]
	if not isinstance(candidate, dict):
		return None

	content = candidate.get("content")
	if isinstance(content, dict):
		parts = content.get("parts")
		if isinstance(parts, list) and parts and isinstance(parts[0], dict):
			text = parts[0].get("text")
			if isinstance(text, str) and text:
				return text
	for key in ("output", "text"):
		value = candidate.get(key)
		if isinstance(value, str) and value:
			return value
	return None


class GeminiClient:
	def __init__(self, http_client: httpx.AsyncClient, api_key: str, settings: Settings | None = None):
		self.http = http_client
		self.api_key = api_key
		self.settings = settings or get_settings()

	@property
	def configured(self) -> bool:
		return bool(self.api_key)

	@property
	def endpoint(self) -> str:
		base = self.settings.gemini_base_url.rstrip("/")
		return f"{base}/models/{self.settings.gemini_model}:generateContent"

	async def generate(self, prompt: str, config: GenerationConfig) -> str:
		"""Return the first candidate's text.

		Raises ``GeminiError`` for non-JSON bodies, upstream errors and empty
		candidates; transport failures propagate as ``httpx.HTTPError``.
		"""
		body = {
			"contents": [{"parts": [{"text": prompt}]}],
			"generationConfig": config.as_payload(),
		}
		response = await self.http.post(self.endpoint, params={"key": self.api_key}, json=body)

		raw_text = response.text
		try:
			payload = json.loads(raw_text) if raw_text else {}
		except json.JSONDecodeError as exc:
			raise GeminiError(
				"Gemini service returned a non-JSON response. Please try again later.",
				status_code=response.status_code,
			) from exc
		if not isinstance(payload, dict):
			payload = {}

		text = extract_candidate_text(payload)
		if response.is_success and text:
			return text

		error = payload.get("error")
		detail = error.get("message") if isinstance(error, dict) else None
		raise GeminiError(
			detail or raw_text.strip() or f"HTTP {response.status_code}",
			status_code=response.status_code,
		)
