"""Pass-through proxy for the image and soil model endpoints."""

from __future__ import annotations

from typing import Any, NamedTuple

import httpx
import structlog
from pydantic import ValidationError

from agrivision.config import Settings, get_settings
from agrivision.schemas.inference import InferencePayload

logger = structlog.get_logger("agrivision.inference")


class UpstreamError(Exception):
	"""An upstream model call failed; ``message`` is safe to show to clients."""

	def __init__(self, message: str, *, upstream: str, cause: str | None = None):
		super().__init__(message)
		self.message = message
		self.upstream = upstream
		self.cause = cause


class ProxiedReply(NamedTuple):
	status_code: int
	payload: dict[str, Any]


class InferenceProxy:
	def __init__(self, http_client: httpx.AsyncClient, settings: Settings | None = None):
		self.http = http_client
		self.settings = settings or get_settings()

	async def predict_disease(self, filename: str | None, content: bytes, content_type: str | None = None) -> ProxiedReply:
		return await self._forward_image("disease", self.settings.disease_model_url, filename, content, content_type)

	async def predict_pest(self, filename: str | None, content: bytes, content_type: str | None = None) -> ProxiedReply:
		return await self._forward_image("pest", self.settings.pest_model_url, filename, content, content_type)

	async def analyze_soil(self, code: str) -> dict[str, Any]:
		try:
			response = await self.http.post(self.settings.npk_model_url, json={"code": code})
		except httpx.HTTPError as exc:
			logger.warning("npk_request_failed", error=str(exc))
			raise UpstreamError(
				"Connection Failed! Check your internet or API URL.",
				upstream="npk",
				cause=str(exc),
			) from exc

		try:
			payload = response.json()
		except ValueError:
			payload = {}
		if not response.is_success:
			detail = payload.get("error") if isinstance(payload, dict) else None
			raise UpstreamError(f"Server Error: {detail or 'Unknown error'}", upstream="npk")
		return self._validate("npk", payload)

	async def _forward_image(
		self,
		upstream: str,
		url: str,
		filename: str | None,
		content: bytes,
		content_type: str | None,
	) -> ProxiedReply:
		"""Relay the model's JSON object and status unchanged, error statuses included."""
		files = {"file": (filename or "upload", content, content_type or "application/octet-stream")}
		try:
			response = await self.http.post(url, files=files)
			payload = response.json()
		except (httpx.HTTPError, ValueError) as exc:
			logger.warning("inference_proxy_failed", upstream=upstream, error=str(exc))
			raise UpstreamError("Proxy server error", upstream=upstream, cause=str(exc)) from exc

		log = logger.info if response.is_success else logger.warning
		log("inference_proxy_reply", upstream=upstream, status_code=response.status_code, bytes=len(content))
		return ProxiedReply(response.status_code, self._validate(upstream, payload))

	@staticmethod
	def _validate(upstream: str, payload: Any) -> dict[str, Any]:
		try:
			return InferencePayload.model_validate(payload).root
		except ValidationError as exc:
			logger.warning("inference_contract_violation", upstream=upstream, error=str(exc))
			raise UpstreamError("Proxy server error", upstream=upstream, cause="non-object JSON body") from exc
