"""Per-metric natural-language descriptions for forecast alerts.

Each metric gets its own Gemini prompt. Calls fan out concurrently and every
call absorbs its own failure by substituting a rule-based sentence, so the
aggregate result always has one entry per present metric and never raises.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable
from typing import Any

import httpx
import structlog

from agrivision.config import Settings, get_settings
from agrivision.schemas.ai import MetricBundle, MetricKey, MetricValue
from agrivision.services.gemini_client import DESCRIPTION_GENERATION, GeminiClient, GeminiError

logger = structlog.get_logger("agrivision.descriptions")

MIN_METRIC_DESCRIPTION_LENGTH = 20
MIN_ACTION_DESCRIPTION_LENGTH = 30

_LEADING_NUMBER = re.compile(r"\s*[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?")
_FENCED_CODE = re.compile(r"```.*?```", re.DOTALL)
_ELLIPSIS_TAIL = re.compile(r"\.\.\..*\Z")
_DEVANAGARI = re.compile(r"[\u0900-\u097F]")
_TERMINAL_PUNCTUATION = re.compile(r"[.!?]\Z")

METRIC_INCOMPLETE_PATTERNS = tuple(
	re.compile(pattern, re.IGNORECASE)
	for pattern in (
		r"means\.?\Z",
		r"value of \d+\.?\Z",
		r"risk of \d+%\.?\Z",
		r"index of \d+\.?\Z",
		r"is \d+\.?\Z",
		r"are \d+\.?\Z",
	)
)

ACTION_INCOMPLETE_PATTERNS = tuple(
	re.compile(pattern, re.IGNORECASE)
	for pattern in (
		r"means\.?\Z",
		r'"([^"]+)" means\.?\Z',
		r'\A"([^"]+)"\.?\Z',
		r"is \d+\.?\Z",
		r"are \d+\.?\Z",
	)
)

_REQUIREMENTS = """CRITICAL REQUIREMENTS:
- Respond ONLY in English (no Hindi, no mixed languages)
- Provide COMPLETE, FULL sentences - do NOT cut off mid-sentence
- Write 2-3 complete sentences that form a full explanation
- Each sentence must be complete with proper ending punctuation
- Be practical and farmer-friendly
- Do not use markdown formatting
- Start directly with the explanation, do not say "{avoid}" - instead explain what it means"""


# ── Value helpers ──────────────────────────────────────────────────────────


def parse_number(value: Any) -> float:
	"""Lenient numeric parse: leading number of a string, else 0."""
	if isinstance(value, bool) or value is None:
		return 0.0
	if isinstance(value, int | float):
		return float(value)
	match = _LEADING_NUMBER.match(str(value))
	if match is None:
		return 0.0
	return float(match.group(0))


def _whole(value: Any) -> int:
	return int(parse_number(value))


def _fmt(value: float) -> str:
	return str(int(value)) if float(value).is_integer() else str(value)


def _ctx(value: MetricValue, default: str) -> str:
	"""Context value for a prompt; falsy values (including 0) become ``default``."""
	if not value:
		return default
	if isinstance(value, float):
		return _fmt(value)
	return str(value)


# ── Prompts ────────────────────────────────────────────────────────────────


def build_ndvi_prompt(value: MetricValue, metrics: MetricBundle) -> str:
	ndvi = _fmt(parse_number(value))
	return f"""You are an agriculture expert. Explain what NDVI (Normalized Difference Vegetation Index) value of {ndvi} means for crop health.

Context:
- NDVI Range: -1 to 1 (where 1 = very healthy vegetation, 0 = no vegetation, negative = water/clouds)
- Current NDVI: {ndvi}
- Soil Moisture: {_ctx(metrics.moisture, "N/A")}
- Disease Risk: {_ctx(metrics.disease_risk, "0")}%
- Pest Risk: {_ctx(metrics.pest_risk, "0")}%

{_REQUIREMENTS.format(avoid=f"An NDVI value of {ndvi} means")}

Provide a complete explanation covering:
1. What this NDVI value indicates about crop health (complete sentence)
2. Whether action is needed (complete sentence)
3. What the farmer should know (complete sentence)

Keep it simple and practical for Indian farmers."""


def build_moisture_prompt(value: MetricValue, metrics: MetricBundle) -> str:
	moisture = _fmt(parse_number(value))
	return f"""You are an agriculture expert. Explain what soil moisture level of {moisture} means for crop irrigation.

Context:
- Soil Moisture Range: 0-100% (where 100% = fully saturated, 0% = completely dry)
- Current Moisture: {moisture}%
- NDVI: {_ctx(metrics.ndvi, "N/A")}
- Disease Risk: {_ctx(metrics.disease_risk, "0")}%

IMPORTANT REQUIREMENTS:
- Respond ONLY in English (no Hindi, no mixed languages)
- Provide complete sentences (do not cut off mid-sentence)
- Maximum 2-3 sentences
- Be practical and farmer-friendly
- Do not use markdown formatting

Provide a brief explanation about:
1. Whether the soil has adequate moisture
2. If irrigation is needed
3. What the farmer should do

Keep it simple and practical for Indian farmers."""


def build_disease_prompt(value: MetricValue, metrics: MetricBundle) -> str:
	risk = _whole(value)
	return f"""You are an agriculture expert. Explain what disease risk level of {risk}% means for crop health.

Context:
- Disease Risk: {risk}% (0-100%, where 100% = very high risk)
- NDVI: {_ctx(metrics.ndvi, "N/A")}
- Soil Moisture: {_ctx(metrics.moisture, "N/A")}%
- Stress Index: {_ctx(metrics.stress_index, "0")}%

{_REQUIREMENTS.format(avoid=f"A {risk}% disease risk means")}

Provide a complete explanation covering:
1. What this risk level means for the crops (complete sentence)
2. Whether preventive action is needed (complete sentence)
3. What the farmer should watch for (complete sentence)

Keep it simple and practical for Indian farmers."""


def build_pest_prompt(value: MetricValue, metrics: MetricBundle) -> str:
	risk = _whole(value)
	return f"""You are an agriculture expert. Explain what pest risk level of {risk}% means for crop protection.

Context:
- Pest Risk: {risk}% (0-100%, where 100% = very high risk)
- NDVI: {_ctx(metrics.ndvi, "N/A")}
- Disease Risk: {_ctx(metrics.disease_risk, "0")}%
- Stress Index: {_ctx(metrics.stress_index, "0")}%

{_REQUIREMENTS.format(avoid=f"A {risk}% pest risk means")}

Provide a complete explanation covering:
1. What this risk level means for the crops (complete sentence)
2. Whether pest control is needed (complete sentence)
3. What preventive measures the farmer should take (complete sentence)

Keep it simple and practical for Indian farmers."""


def build_stress_prompt(value: MetricValue, metrics: MetricBundle) -> str:
	stress = _whole(value)
	return f"""You are an agriculture expert. Explain what crop stress index of {stress}% means.

Context:
- Stress Index: {stress}% (0-100%, where 100% = severe stress)
- NDVI: {_ctx(metrics.ndvi, "N/A")}
- Soil Moisture: {_ctx(metrics.moisture, "N/A")}%
- Disease Risk: {_ctx(metrics.disease_risk, "0")}%
- Pest Risk: {_ctx(metrics.pest_risk, "0")}%

{_REQUIREMENTS.format(avoid=f"A crop stress index of {stress}%")}

Provide a complete explanation covering:
1. What this stress level indicates about crop condition (complete sentence)
2. Whether the crops are under stress (complete sentence)
3. What the farmer should do to reduce stress (complete sentence)

Keep it simple and practical for Indian farmers."""


def build_action_prompt(action: str, metrics: MetricBundle) -> str:
	return f"""You are an agriculture expert. Explain this farm advisory action in simple, farmer-friendly English.

Advisory Action: "{action}"

Current Crop Conditions:
- NDVI: {_ctx(metrics.ndvi, "N/A")}
- Soil Moisture: {_ctx(metrics.moisture, "N/A")}%
- Disease Risk: {_ctx(metrics.disease_risk, "0")}%
- Pest Risk: {_ctx(metrics.pest_risk, "0")}%
- Stress Index: {_ctx(metrics.stress_index, "0")}%

CRITICAL REQUIREMENTS:
- Respond ONLY in English (no Hindi, no mixed languages)
- Provide exactly 1-2 COMPLETE sentences - do NOT cut off mid-sentence
- Each sentence must be complete with proper ending punctuation
- Explain what this action means and why it's important
- Be practical and actionable for Indian farmers
- Do not use markdown formatting
- Start directly with the explanation, do not repeat the action name or say "{action} means" - just explain it

Provide a complete 1-2 sentence explanation of what this advisory action means and why the farmer should follow it."""


PROMPT_BUILDERS: dict[MetricKey, Callable[[MetricValue, MetricBundle], str]] = {
	MetricKey.ndvi: build_ndvi_prompt,
	MetricKey.moisture: build_moisture_prompt,
	MetricKey.disease_risk: build_disease_prompt,
	MetricKey.pest_risk: build_pest_prompt,
	MetricKey.stress_index: build_stress_prompt,
}


# ── Defaults ───────────────────────────────────────────────────────────────


def default_description(key: MetricKey, value: MetricValue) -> str:
	if key is MetricKey.ndvi:
		ndvi = parse_number(value)
		if ndvi >= 0.7:
			return "Excellent crop health. Vegetation is very healthy and thriving."
		if ndvi >= 0.4:
			return "Good crop health. Vegetation is healthy but monitor regularly."
		if ndvi >= 0.2:
			return "Moderate crop health. Some areas may need attention."
		return "Poor crop health. Immediate action may be required."

	if key is MetricKey.moisture:
		moisture = parse_number(value)
		if moisture >= 60:
			return "Soil has adequate moisture. Irrigation may not be needed."
		if moisture >= 40:
			return "Soil moisture is moderate. Monitor and irrigate if needed."
		return "Soil is dry. Irrigation is recommended."

	level = _whole(value)
	if key is MetricKey.disease_risk:
		if level >= 60:
			return "High disease risk detected. Take preventive measures immediately."
		if level >= 30:
			return "Moderate disease risk. Monitor crops closely."
		return "Low disease risk. Continue regular monitoring."

	if key is MetricKey.pest_risk:
		if level >= 60:
			return "High pest risk detected. Apply pest control measures."
		if level >= 30:
			return "Moderate pest risk. Monitor for pest activity."
		return "Low pest risk. Continue regular monitoring."

	if level >= 60:
		return "High crop stress detected. Check irrigation and nutrient levels."
	if level >= 30:
		return "Moderate crop stress. Monitor conditions."
	return "Low crop stress. Crops are healthy."


def default_action_description(action: str) -> str:
	lowered = action.lower()
	if "irrigation" in lowered or "water" in lowered:
		return "Schedule and apply irrigation to maintain adequate soil moisture levels for optimal crop growth and health."
	if "fungicide" in lowered or "fungal" in lowered:
		return "Apply fungicide to prevent and control fungal diseases that can damage your crops and reduce yield."
	if "pest" in lowered or "insecticide" in lowered:
		return "Monitor and control pests to protect your crops from damage and prevent yield loss."
	if "fertilizer" in lowered or "nutrient" in lowered:
		return "Apply appropriate fertilizers to provide essential nutrients for optimal crop growth and development."
	return "Follow this advisory action to maintain healthy crop conditions and maximize your yield potential."


# ── Validation ─────────────────────────────────────────────────────────────


def clean_generated_text(text: str) -> str:
	cleaned = text.strip()
	cleaned = cleaned.replace("**", "").replace("*", "")
	cleaned = _FENCED_CODE.sub("", cleaned)
	cleaned = cleaned.replace("`", "")
	return _ELLIPSIS_TAIL.sub("", cleaned)


def validate_generated_text(
	text: str,
	*,
	min_length: int = MIN_METRIC_DESCRIPTION_LENGTH,
	incomplete_patterns: tuple[re.Pattern[str], ...] = METRIC_INCOMPLETE_PATTERNS,
) -> str | None:
	"""Cleaned text, or ``None`` when it must be replaced by a default."""
	cleaned = clean_generated_text(text)
	stripped = cleaned.strip()
	if any(pattern.search(stripped) for pattern in incomplete_patterns):
		return None
	if len(cleaned) < min_length:
		return None
	if _DEVANAGARI.search(cleaned):
		return None
	if not _TERMINAL_PUNCTUATION.search(cleaned):
		cleaned += "."
	return cleaned


# ── Service ────────────────────────────────────────────────────────────────


class DescriptionService:
	def __init__(self, http_client: httpx.AsyncClient, settings: Settings | None = None):
		self.settings = settings or get_settings()
		self.gemini = GeminiClient(http_client, self.settings.gemini_api_key_2, self.settings)

	async def describe_all(self, metrics: MetricBundle) -> dict[str, str]:
		keys = metrics.present()
		results = await asyncio.gather(*(self.describe_metric(key, metrics) for key in keys))
		return {key.value: text for key, text in zip(keys, results, strict=True)}

	async def describe_metric(self, key: MetricKey, metrics: MetricBundle) -> str:
		value = metrics.value(key)
		if not self.gemini.configured:
			return default_description(key, value)

		prompt = PROMPT_BUILDERS[key](value, metrics)
		try:
			text = await self.gemini.generate(prompt, DESCRIPTION_GENERATION)
		except (GeminiError, httpx.HTTPError) as exc:
			logger.warning("description_generation_failed", metric=key.value, error=str(exc))
			return default_description(key, value)
		except Exception:
			logger.exception("description_generation_crashed", metric=key.value)
			return default_description(key, value)

		validated = validate_generated_text(text)
		if validated is None:
			logger.warning("description_rejected", metric=key.value, text=text[:200])
			return default_description(key, value)
		return validated

	async def describe_actions(self, actions: list[str], metrics: MetricBundle) -> dict[str, str]:
		unique = list(dict.fromkeys(action.strip() for action in actions if action.strip()))
		results = await asyncio.gather(*(self.describe_action(action, metrics) for action in unique))
		return dict(zip(unique, results, strict=True))

	async def describe_action(self, action: str, metrics: MetricBundle) -> str:
		if not self.gemini.configured:
			return default_action_description(action)

		try:
			text = await self.gemini.generate(build_action_prompt(action, metrics), DESCRIPTION_GENERATION)
		except (GeminiError, httpx.HTTPError) as exc:
			logger.warning("action_description_failed", action=action, error=str(exc))
			return default_action_description(action)
		except Exception:
			logger.exception("action_description_crashed", action=action)
			return default_action_description(action)

		validated = validate_generated_text(
			text,
			min_length=MIN_ACTION_DESCRIPTION_LENGTH,
			incomplete_patterns=ACTION_INCOMPLETE_PATTERNS,
		)
		if validated is None:
			logger.warning("action_description_rejected", action=action, text=text[:200])
			return default_action_description(action)
		return validated
