"""WebSocket feed of alert-cache changes for the signed-in user."""

from __future__ import annotations

import asyncio
import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from agrivision.auth.dependencies import AuthError, Session, verify_id_token
from agrivision.services.alert_cache import updates_channel

router = APIRouter(tags=["websocket"])
logger = structlog.get_logger("agrivision.ws")


async def _authenticate_token(token: str) -> Session | None:
	try:
		return await verify_id_token(token)
	except AuthError:
		return None


async def _wait_for_disconnect(websocket: WebSocket) -> None:
	"""Drain client frames until the socket closes; the feed is server-to-client only."""
	while True:
		message = await websocket.receive()
		if message["type"] == "websocket.disconnect":
			return


@router.websocket("/ws/alerts/live")
async def ws_alert_updates(websocket: WebSocket) -> None:
	await websocket.accept()

	token = websocket.query_params.get("token")
	if token is None or not token.strip():
		await websocket.send_json({"error": "auth_required"})
		await websocket.close(code=1008)
		return
	session = await _authenticate_token(token.strip())
	if session is None:
		await websocket.send_json({"error": "auth_invalid"})
		await websocket.close(code=1008)
		return

	redis_client = getattr(websocket.app.state, "redis", None)
	if redis_client is None:
		await websocket.send_json({"error": "redis_unavailable"})
		await websocket.close(code=1011)
		return

	channel = updates_channel(session.uid)
	pubsub = redis_client.pubsub()
	await pubsub.subscribe(channel)
	logger.info("alert_feed_subscribed", user_id=session.uid)

	disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
	try:
		while not disconnected.done():
			message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
			if message is not None and message.get("type") == "message":
				payload = message.get("data")
				if isinstance(payload, bytes):
					payload = payload.decode("utf-8")
				if isinstance(payload, str):
					try:
						await websocket.send_json(json.loads(payload))
					except json.JSONDecodeError:
						await websocket.send_text(payload)
			await asyncio.sleep(0.05)
	except WebSocketDisconnect:
		return
	finally:
		disconnected.cancel()
		await pubsub.unsubscribe(channel)
		await pubsub.close()
		logger.info("alert_feed_closed", user_id=session.uid)
