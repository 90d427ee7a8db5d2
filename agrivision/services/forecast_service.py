"""LSTM forecast retrieval and conversion into prioritised alerts."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from agrivision.config import Settings, get_settings
from agrivision.schemas.alerts import (
	FORECAST_HORIZONS,
	Alert,
	AlertMetricSet,
	AlertPriority,
	AlertSet,
	AlertsResponse,
	AlertSummary,
	ForecastResult,
)
from agrivision.services.alert_cache import AlertCache
from agrivision.services.inference_proxy import UpstreamError

logger = structlog.get_logger("agrivision.forecast")

# Product rule: any risk strictly above 60 makes the period high priority.
HIGH_PRIORITY_THRESHOLD = 60.0
MEDIUM_PRIORITY_THRESHOLD = 30.0

_PERIOD_TITLES = {
	"day_1": "Tomorrow's field outlook",
	"day_7": "7-day field outlook",
	"day_14": "14-day field outlook",
}


def alert_priority(metrics: AlertMetricSet, stress_index: float | None = None) -> AlertPriority:
	"""Rank one period from its disease and pest risks and the forecast-wide stress index.

	A period's own ``stress_index`` is display-only and does not affect the rank.
	"""
	risks = [value or 0.0 for value in (metrics.disease_risk, metrics.pest_risk, stress_index)]
	if any(risk > HIGH_PRIORITY_THRESHOLD for risk in risks):
		return AlertPriority.high
	if any(risk > MEDIUM_PRIORITY_THRESHOLD for risk in risks):
		return AlertPriority.medium
	return AlertPriority.low


def build_alerts(field_id: str, forecast: ForecastResult) -> AlertSet:
	alerts = AlertSet()
	for horizon, period in FORECAST_HORIZONS.items():
		metrics = forecast.forecast.get(horizon)
		if metrics is None:
			continue
		if metrics.stress_index is None and forecast.stress_index is not None:
			metrics = metrics.model_copy(update={"stress_index": forecast.stress_index})
		getattr(alerts, period.value).append(
			Alert(
				id=f"{field_id}:{horizon}",
				period=period,
				title=_PERIOD_TITLES[horizon],
				priority=alert_priority(metrics, forecast.stress_index),
				metrics=metrics,
				actions=list(metrics.advisory),
			)
		)
	return alerts


def summarize(alerts: AlertSet) -> AlertSummary:
	items = alerts.all()
	return AlertSummary(
		total=len(items),
		high_priority=sum(1 for item in items if item.priority is AlertPriority.high),
	)


class ForecastService:
	def __init__(
		self,
		http_client: httpx.AsyncClient,
		cache: AlertCache,
		settings: Settings | None = None,
	):
		self.http = http_client
		self.cache = cache
		self.settings = settings or get_settings()

	async def fetch_forecast(self, lat: float, lng: float) -> ForecastResult:
		try:
			response = await self.http.post(self.settings.forecast_model_url, json={"lat": lat, "lon": lng})
			response.raise_for_status()
			payload: Any = response.json()
		except (httpx.HTTPError, ValueError) as exc:
			logger.warning("forecast_request_failed", error=str(exc))
			raise UpstreamError("Forecast service unavailable", upstream="forecast", cause=str(exc)) from exc

		if not isinstance(payload, dict) or not payload.get("success"):
			raise UpstreamError("Forecast service returned no data", upstream="forecast")
		try:
			return ForecastResult.model_validate(payload.get("data") or {})
		except ValidationError as exc:
			raise UpstreamError("Forecast service returned malformed data", upstream="forecast") from exc

	async def cached_alerts(self, user_id: str, field_id: str) -> AlertsResponse | None:
		entry = await self.cache.read(user_id, field_id)
		if entry is None:
			return None
		return AlertsResponse(
			field_id=field_id,
			cached=True,
			timestamp=entry.timestamp,
			alerts=entry.alerts,
			summary=summarize(entry.alerts),
		)

	async def get_alerts(self, user_id: str, field_id: str, lat: float, lng: float) -> AlertsResponse:
		"""Serve from cache when the entry belongs to this field, else fetch and cache."""
		cached = await self.cached_alerts(user_id, field_id)
		if cached is not None:
			return cached
		return await self.refresh_alerts(user_id, field_id, lat, lng)

	async def refresh_alerts(self, user_id: str, field_id: str, lat: float, lng: float) -> AlertsResponse:
		forecast = await self.fetch_forecast(lat, lng)
		alerts = build_alerts(field_id, forecast)
		entry = await self.cache.write(user_id, field_id, alerts)
		logger.info("alerts_refreshed", field_id=field_id, total=len(alerts.all()))
		return AlertsResponse(
			field_id=field_id,
			cached=False,
			timestamp=entry.timestamp,
			alerts=alerts,
			summary=summarize(alerts),
		)
