"""Pydantic schemas for the generative-language endpoints."""

from __future__ import annotations

from enum import StrEnum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

MetricValue = float | str | None


class MetricKey(StrEnum):
	ndvi = "ndvi"
	moisture = "moisture"
	disease_risk = "diseaseRisk"
	pest_risk = "pestRisk"
	stress_index = "stressIndex"


class GenerateRequest(BaseModel):
	message: str = Field(min_length=1, max_length=8000)


class GenerateResponse(BaseModel):
	response: str


class MetricBundle(BaseModel):
	"""Forecast metrics as the dashboard sends them.

	Each value is a number, a numeric string, ``"-"`` (placeholder) or null.
	"""

	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	ndvi: MetricValue = Field(default=None, validation_alias=AliasChoices("ndvi", "NDVI"))
	moisture: MetricValue = Field(
		default=None,
		validation_alias=AliasChoices("moisture", "soil_moisture", "soilMoisture"),
	)
	disease_risk: MetricValue = Field(
		default=None,
		validation_alias=AliasChoices("diseaseRisk", "disease_risk"),
		serialization_alias="diseaseRisk",
	)
	pest_risk: MetricValue = Field(
		default=None,
		validation_alias=AliasChoices("pestRisk", "pest_risk"),
		serialization_alias="pestRisk",
	)
	stress_index: MetricValue = Field(
		default=None,
		validation_alias=AliasChoices("stressIndex", "stress_index"),
		serialization_alias="stressIndex",
	)

	def value(self, key: MetricKey) -> MetricValue:
		return {
			MetricKey.ndvi: self.ndvi,
			MetricKey.moisture: self.moisture,
			MetricKey.disease_risk: self.disease_risk,
			MetricKey.pest_risk: self.pest_risk,
			MetricKey.stress_index: self.stress_index,
		}[key]

	def present(self) -> list[MetricKey]:
		"""Metrics carrying a real value, in a stable order."""
		return [key for key in MetricKey if not is_placeholder(self.value(key))]


def is_placeholder(value: MetricValue) -> bool:
	return value is None or (isinstance(value, str) and value.strip() in {"", "-"})


class DescriptionRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	metrics: MetricBundle
	advisory_actions: list[str] = Field(default_factory=list, alias="advisoryActions")
	field_id: str | None = Field(default=None, alias="fieldId")


class DescriptionResponse(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	success: bool = True
	descriptions: dict[str, str]
	field_id: str | None = Field(default=None, alias="fieldId")


class AdvisoryDescriptionRequest(BaseModel):
	actions: list[str] = Field(min_length=1, max_length=20)
	metrics: MetricBundle = Field(default_factory=MetricBundle)


class AdvisoryDescriptionResponse(BaseModel):
	success: bool = True
	descriptions: dict[str, str]
