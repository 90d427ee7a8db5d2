"""Outbound farmer notifications through the alert webhook."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from agrivision.config import Settings, get_settings
from agrivision.schemas.alerts import AlertType, NotificationResult

logger = structlog.get_logger("agrivision.notifications")


def field_alert_message(alert_type: AlertType, location: str | None, custom_message: str | None = None) -> str:
	place = location or "your field"
	messages = {
		AlertType.pest: f"⚠️ Pest attack expected soon in your area near {place}. Please take preventive measures.",
		AlertType.disease: f"🦠 Disease outbreak detected in your region. Monitor your crops at {place} closely.",
		AlertType.weather: f"🌦️ Weather alert for {place}. Adverse conditions expected. Please take necessary precautions.",
		AlertType.irrigation: f"💧 Irrigation alert for {place}. Water stress detected based on vegetation indices.",
		AlertType.harvest: f"🌾 Your crops at {place} are approaching optimal harvest time based on vegetation analysis.",
	}
	if alert_type in messages:
		return messages[alert_type]
	return custom_message or f"📊 Update about your field at {location or 'your location'}."


def welcome_message() -> str:
	return (
		"🎉 Welcome to AgriVision! You will receive timely alerts about your crops, weather "
		"conditions, and pest warnings to help you make informed farming decisions."
	)


def field_added_message(indices: Sequence[str], location: str | None) -> str:
	indices_text = f"monitoring {', '.join(indices)} indices" if indices else "monitoring"
	return (
		f"✅ Your field has been successfully added to AgriVision! We are now {indices_text} "
		f"for your field at {location or 'your location'}. You will receive alerts about crop "
		"health, pest warnings, and weather conditions."
	)


class NotificationService:
	"""Webhook sender; failures are reported in the result, never raised."""

	def __init__(self, http_client: httpx.AsyncClient, settings: Settings | None = None):
		self.http = http_client
		self.settings = settings or get_settings()

	async def send_alert(self, user: dict[str, Any], message: str) -> NotificationResult:
		if not self.settings.alert_webhook_url:
			logger.warning("alert_webhook_not_configured")
			return NotificationResult(success=False, error="Alert webhook is not configured")

		payload = {
			"body": {
				"name": user.get("name") or "Farmer",
				"email": user.get("email"),
				"phone": user.get("phone"),
				"message": message,
			}
		}
		try:
			response = await self.http.post(
				self.settings.alert_webhook_url,
				json=payload,
				timeout=self.settings.alert_webhook_timeout_seconds,
			)
			response.raise_for_status()
		except httpx.HTTPStatusError as exc:
			logger.warning("alert_notification_failed", status_code=exc.response.status_code)
			return NotificationResult(success=False, error=_body(exc.response))
		except httpx.HTTPError as exc:
			logger.warning("alert_notification_failed", error=str(exc))
			return NotificationResult(success=False, error=str(exc) or exc.__class__.__name__)

		logger.info("alert_notification_sent")
		return NotificationResult(success=True, data=_body(response))

	async def send_field_alert(
		self,
		user: dict[str, Any],
		alert_type: AlertType,
		location: str | None = None,
		custom_message: str | None = None,
	) -> NotificationResult:
		return await self.send_alert(user, field_alert_message(alert_type, location, custom_message))

	async def send_welcome(self, user: dict[str, Any]) -> NotificationResult:
		return await self.send_alert(user, welcome_message())

	async def send_field_added(
		self,
		user: dict[str, Any],
		indices: Sequence[str],
		location: str | None = None,
	) -> NotificationResult:
		return await self.send_alert(user, field_added_message(indices, location))


def _body(response: httpx.Response) -> Any:
	try:
		return response.json()
	except ValueError:
		return response.text
