"""Schemas for image and soil model proxies."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field, RootModel, field_validator

_SOIL_CODE = re.compile(r"[0-9]{30}")


class InferencePayload(RootModel[dict[str, Any]]):
	"""Upstream model response; only the top-level JSON object shape is enforced."""


class SoilAnalysisRequest(BaseModel):
	code: str = Field(min_length=1, max_length=64)

	@field_validator("code")
	@classmethod
	def _thirty_digits(cls, value: str) -> str:
		value = value.strip()
		if not _SOIL_CODE.fullmatch(value):
			raise ValueError("Code must be exactly 30 digits.")
		return value
