"""Farmer-facing chat assistant."""

from __future__ import annotations

import httpx
import structlog

from agrivision.config import Settings, get_settings
from agrivision.services.gemini_client import CHAT_GENERATION, GeminiClient, GeminiError

logger = structlog.get_logger("agrivision.chat")

CHAT_PROMPT = """You are an agriculture expert AI.
You know soil health, crop nutrients, irrigation schedules, pest control, and fertilizer dosage for Indian crops.

Always reply in simple farmer-friendly English that is easy to understand.

If the user shares soil data (NPK values, pH, organic matter), give specific, practical recommendations.
If rainfall is predicted or mentioned, warn the user accordingly and suggest how to adjust their plan.
Never give unsafe advice. Focus on safe, realistic, and affordable options for small and medium farmers.

User message:
{message}

Based on the above instructions, give a clear, step-by-step answer in simple English:"""


class ChatService:
	def __init__(self, http_client: httpx.AsyncClient, settings: Settings | None = None):
		self.settings = settings or get_settings()
		self.gemini = GeminiClient(http_client, self.settings.gemini_api_key, self.settings)

	async def reply(self, message: str) -> str:
		if not self.gemini.configured:
			raise GeminiError("Gemini API key is not configured")

		prompt = CHAT_PROMPT.format(message=message)
		try:
			text = await self.gemini.generate(prompt, CHAT_GENERATION)
		except GeminiError as exc:
			logger.error("chat_generation_failed", status_code=exc.status_code, error=exc.message)
			raise
		return text.strip()
