"""Schemas for user profiles."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProfileUpdate(BaseModel):
	name: str | None = Field(default=None, max_length=255)
	phone: str | None = Field(default=None, max_length=32)
	address: str | None = Field(default=None, max_length=500)


class ProfileRead(BaseModel):
	model_config = ConfigDict(extra="allow")

	uid: str
	email: str | None = None
	name: str | None = None
	phone: str | None = None
	address: str | None = None
	role: str = "user"


class ProfileUpdateResponse(BaseModel):
	message: str = "Profile updated successfully"
	profile: dict[str, Any]
