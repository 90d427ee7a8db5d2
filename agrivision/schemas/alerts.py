"""Pydantic schemas for forecast-driven alerts and notifications."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class AlertPriority(StrEnum):
	high = "high"
	medium = "medium"
	low = "low"


class AlertPeriod(StrEnum):
	daily = "daily"
	weekly = "weekly"
	biweekly = "biweekly"


FORECAST_HORIZONS: dict[str, AlertPeriod] = {
	"day_1": AlertPeriod.daily,
	"day_7": AlertPeriod.weekly,
	"day_14": AlertPeriod.biweekly,
}


class AlertMetricSet(BaseModel):
	"""One forecast horizon as produced by the LSTM service.

	Risk and percentage fields are expected in [0, 100]; the producer owns that
	range and it is not re-checked here.
	"""

	model_config = ConfigDict(populate_by_name=True, extra="allow")

	ndvi: float | None = Field(default=None, validation_alias=AliasChoices("ndvi", "NDVI"))
	moisture: float | None = Field(
		default=None,
		validation_alias=AliasChoices("moisture", "soil_moisture"),
	)
	disease_risk: float | None = Field(
		default=None,
		validation_alias=AliasChoices("disease_risk", "diseaseRisk"),
		serialization_alias="diseaseRisk",
	)
	pest_risk: float | None = Field(
		default=None,
		validation_alias=AliasChoices("pest_risk", "pestRisk"),
		serialization_alias="pestRisk",
	)
	stress_index: float | None = Field(
		default=None,
		validation_alias=AliasChoices("stress_index", "stressIndex"),
		serialization_alias="stressIndex",
	)
	ndvi_change: float | None = Field(
		default=None,
		validation_alias=AliasChoices("ndvi_change", "ndviChange"),
		serialization_alias="ndviChange",
	)
	moisture_change: float | None = Field(
		default=None,
		validation_alias=AliasChoices("moisture_change", "moistureChange"),
		serialization_alias="moistureChange",
	)
	disease_risk_change: float | None = Field(
		default=None,
		validation_alias=AliasChoices("disease_risk_change", "diseaseRiskChange"),
		serialization_alias="diseaseRiskChange",
	)
	pest_risk_change: float | None = Field(
		default=None,
		validation_alias=AliasChoices("pest_risk_change", "pestRiskChange"),
		serialization_alias="pestRiskChange",
	)
	advisory: list[str] = Field(
		default_factory=list,
		validation_alias=AliasChoices("advisory", "advisory_actions", "advisoryActions"),
	)


class ForecastResult(BaseModel):
	model_config = ConfigDict(extra="allow")

	forecast: dict[str, AlertMetricSet] = Field(default_factory=dict)
	stress_index: float | None = None


class Alert(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	id: str
	period: AlertPeriod
	title: str
	priority: AlertPriority
	metrics: AlertMetricSet
	actions: list[str] = Field(default_factory=list)


class AlertSet(BaseModel):
	daily: list[Alert] = Field(default_factory=list)
	weekly: list[Alert] = Field(default_factory=list)
	biweekly: list[Alert] = Field(default_factory=list)

	def all(self) -> list[Alert]:
		return [*self.daily, *self.weekly, *self.biweekly]


class AlertSummary(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	total: int = 0
	high_priority: int = Field(default=0, alias="highPriority")


class AlertCacheEntry(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	alerts: AlertSet
	timestamp: datetime
	field_id: str = Field(alias="fieldId")


class AlertsResponse(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	field_id: str = Field(alias="fieldId")
	cached: bool
	timestamp: datetime
	alerts: AlertSet
	summary: AlertSummary


class AlertRefreshRequest(BaseModel):
	lat: float = Field(gt=-90, lt=90)
	lng: float = Field(ge=-180, le=180)


class AlertType(StrEnum):
	pest = "pest"
	disease = "disease"
	weather = "weather"
	irrigation = "irrigation"
	harvest = "harvest"
	general = "general"


class NotifyRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	alert_type: AlertType = Field(default=AlertType.general, alias="alertType")
	location: str | None = Field(default=None, max_length=255)
	message: str | None = Field(default=None, max_length=1000)


class NotificationResult(BaseModel):
	success: bool
	data: Any | None = None
	error: Any | None = None
