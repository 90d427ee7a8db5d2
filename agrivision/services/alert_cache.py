"""Per-(user, field) alert cache with change notifications over Redis pub/sub.

Redis is optional: without a client, or when a command fails, reads miss and
writes are skipped so alerts are still served from a fresh forecast.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime

import structlog
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from agrivision.schemas.alerts import AlertCacheEntry, AlertSet

logger = structlog.get_logger("agrivision.alert_cache")

# redis-py raises RedisError subclasses; socket failures can surface as OSError.
_CACHE_ERRORS = (RedisError, OSError)


def cache_key(user_id: str, field_id: str) -> str:
	return f"alerts_cache:{user_id}:{field_id}"


def updates_channel(user_id: str) -> str:
	return f"alerts:{user_id}:updates"


class AlertCache:
	"""Last-writer-wins store; entries live until overwritten or invalidated."""

	def __init__(self, redis_client: Redis | None):
		self.redis_client = redis_client

	async def read(self, user_id: str, field_id: str) -> AlertCacheEntry | None:
		if self.redis_client is None:
			return None
		key = cache_key(user_id, field_id)
		try:
			raw = await self.redis_client.get(key)
		except _CACHE_ERRORS as exc:
			logger.warning("alert_cache_read_failed", cache_key=key, error=str(exc))
			return None
		if raw is None:
			return None

		try:
			entry = AlertCacheEntry.model_validate_json(raw)
		except ValidationError:
			logger.warning("alert_cache_corrupt", cache_key=key)
			return None
		if entry.field_id != field_id:
			return None
		return entry

	async def write(self, user_id: str, field_id: str, alerts: AlertSet) -> AlertCacheEntry:
		entry = AlertCacheEntry(alerts=alerts, timestamp=datetime.now(UTC), field_id=field_id)
		if self.redis_client is None:
			return entry

		key = cache_key(user_id, field_id)
		try:
			await self.redis_client.set(key, entry.model_dump_json(by_alias=True))
		except _CACHE_ERRORS as exc:
			logger.warning("alert_cache_write_failed", cache_key=key, error=str(exc))
			return entry
		await self._notify(user_id, field_id, "updated")
		return entry

	async def invalidate(self, user_id: str, field_id: str) -> bool:
		if self.redis_client is None:
			return False
		key = cache_key(user_id, field_id)
		try:
			removed = await self.redis_client.delete(key)
		except _CACHE_ERRORS as exc:
			logger.warning("alert_cache_invalidate_failed", cache_key=key, error=str(exc))
			return False
		await self._notify(user_id, field_id, "invalidated")
		return bool(removed)

	async def _notify(self, user_id: str, field_id: str, event: str) -> None:
		message = json.dumps(
			{
				"event": event,
				"fieldId": field_id,
				"cacheKey": cache_key(user_id, field_id),
			}
		)
		try:
			await self.redis_client.publish(updates_channel(user_id), message)
		except _CACHE_ERRORS as exc:
			logger.warning("alert_update_publish_failed", user_id=user_id, field_id=field_id, error=str(exc))
