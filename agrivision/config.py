"""Application settings loaded from environment variables via pydantic-settings."""

from enum import StrEnum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class LogFormat(StrEnum):
	json = "json"
	console = "console"


class Settings(BaseSettings):
	"""Central configuration — all values sourced from env vars or .env file."""

	model_config = SettingsConfigDict(
		env_file=".env",
		env_file_encoding="utf-8",
		case_sensitive=False,
	)

	# ── Server ──────────────────────────────────────────────────────────────
	port: int = 5000

	# ── Redis (alert cache + live sync) ─────────────────────────────────────
	redis_url: str = "redis://localhost:6379/0"

	# ── Firebase ────────────────────────────────────────────────────────────
	firebase_project_id: str = ""
	firebase_private_key: str = ""
	firebase_client_email: str = ""

	# ── Gemini ──────────────────────────────────────────────────────────────
	gemini_api_key: str = ""
	gemini_api_key_2: str = ""
	gemini_model: str = "gemini-2.5-flash"
	gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

	# ── Sentinel Hub ────────────────────────────────────────────────────────
	sentinel_client_id: str = ""
	sentinel_client_secret: str = ""
	sentinel_token_url: str = "https://services.sentinel-hub.com/oauth/token"
	sentinel_process_url: str = "https://services.sentinel-hub.com/api/v1/process"
	sentinel_lookback_days: int = 60

	# ── Model endpoints ─────────────────────────────────────────────────────
	disease_model_url: str = "https://itvi-1234-dis-32-sumit.hf.space/predict"
	pest_model_url: str = "https://itvi-1234-pest-pred.hf.space/predict-pest"
	vegetation_model_url: str = "https://itvi-1234-indexes-2all.hf.space"
	forecast_model_url: str = "https://itvi-1234-lstm-sumit-2.hf.space/predict"
	npk_model_url: str = "https://itvi-1234-npk.hf.space/predict"

	# ── Notifications ───────────────────────────────────────────────────────
	alert_webhook_url: str = ""
	alert_webhook_timeout_seconds: float = 10.0

	# ── HTTP ────────────────────────────────────────────────────────────────
	upstream_timeout_seconds: float = 60.0

	# ── Observability ───────────────────────────────────────────────────────
	log_level: str = "info"
	log_format: LogFormat = LogFormat.json

	@property
	def firebase_configured(self) -> bool:
		return bool(self.firebase_project_id and self.firebase_private_key and self.firebase_client_email)

	@property
	def firebase_private_key_pem(self) -> str:
		"""Private key with literal ``\\n`` sequences restored to newlines."""
		return self.firebase_private_key.replace("\\n", "\n")


@lru_cache
def get_settings() -> Settings:
	"""Singleton settings instance (cached after first call)."""
	return Settings()
