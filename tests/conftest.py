"""Shared pytest fixtures: async test client, upstream stubs, fake Redis and Firestore."""

from __future__ import annotations

import copy
import json
from collections.abc import AsyncGenerator, AsyncIterator, Callable, Generator
from contextlib import asynccontextmanager
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from agrivision.auth.dependencies import Session, get_session
from agrivision.config import Settings, get_settings
from agrivision.main import app

TEST_ENV = {
	"GEMINI_API_KEY": "chat-key",
	"GEMINI_API_KEY_2": "description-key",
	"GEMINI_BASE_URL": "https://gemini.test/v1beta",
	"SENTINEL_CLIENT_ID": "sh-client",
	"SENTINEL_CLIENT_SECRET": "sh-secret",
	"SENTINEL_TOKEN_URL": "https://sentinel.test/oauth/token",
	"SENTINEL_PROCESS_URL": "https://sentinel.test/api/v1/process",
	"DISEASE_MODEL_URL": "https://models.test/disease/predict",
	"PEST_MODEL_URL": "https://models.test/pest/predict-pest",
	"VEGETATION_MODEL_URL": "https://models.test/indexes",
	"FORECAST_MODEL_URL": "https://models.test/lstm/predict",
	"NPK_MODEL_URL": "https://models.test/npk/predict",
	"ALERT_WEBHOOK_URL": "https://hooks.test/alerts",
	"REDIS_URL": "redis://redis.test:6379/0",
}

Handler = Callable[[httpx.Request], httpx.Response]


class UpstreamStub:
	"""Routes outbound requests by URL prefix and records every call."""

	def __init__(self) -> None:
		self.routes: dict[str, Handler] = {}
		self.calls: list[httpx.Request] = []

	def add(self, url_prefix: str, handler: Handler) -> None:
		self.routes[url_prefix] = handler

	def add_json(self, url_prefix: str, payload: Any, status_code: int = 200) -> None:
		self.add(url_prefix, lambda _request: httpx.Response(status_code, json=payload))

	def calls_to(self, url_prefix: str) -> list[httpx.Request]:
		return [call for call in self.calls if str(call.url).startswith(url_prefix)]

	def handler(self, request: httpx.Request) -> httpx.Response:
		self.calls.append(request)
		url = str(request.url)
		for prefix in sorted(self.routes, key=len, reverse=True):
			if url.startswith(prefix):
				return self.routes[prefix](request)
		raise httpx.ConnectError(f"no upstream stub for {url}", request=request)


class FakePubSub:
	def __init__(self, payloads: list[dict[str, Any]]) -> None:
		self.payloads = payloads
		self.index = 0
		self.subscribed_channel: str | None = None
		self.unsubscribed_channel: str | None = None
		self.closed = False

	async def subscribe(self, channel: str) -> None:
		self.subscribed_channel = channel

	async def get_message(self, ignore_subscribe_messages: bool, timeout: float) -> dict[str, Any] | None:
		if self.index >= len(self.payloads):
			return None
		message = self.payloads[self.index]
		self.index += 1
		return message

	async def unsubscribe(self, channel: str) -> None:
		self.unsubscribed_channel = channel

	async def close(self) -> None:
		self.closed = True


class FakeRedis:
	"""Dict-backed stand-in for the handful of Redis commands the app uses."""

	def __init__(self, payloads: list[dict[str, Any]] | None = None) -> None:
		self.payloads = payloads or []
		self.store: dict[str, str] = {}
		self.published: list[tuple[str, dict[str, Any]]] = []
		self.last_pubsub: FakePubSub | None = None
		self.healthy = True

	async def ping(self) -> bool:
		if not self.healthy:
			raise ConnectionError("redis down")
		return True

	async def get(self, key: str) -> str | None:
		return self.store.get(key)

	async def set(self, key: str, value: str) -> bool:
		self.store[key] = value
		return True

	async def delete(self, *keys: str) -> int:
		removed = 0
		for key in keys:
			if self.store.pop(key, None) is not None:
				removed += 1
		return removed

	async def publish(self, channel: str, message: str) -> int:
		self.published.append((channel, json.loads(message)))
		return 1

	def pubsub(self) -> FakePubSub:
		self.last_pubsub = FakePubSub(self.payloads)
		return self.last_pubsub


class FakeSnapshot:
	def __init__(self, doc_id: str, data: dict[str, Any] | None) -> None:
		self.id = doc_id
		self._data = data

	@property
	def exists(self) -> bool:
		return self._data is not None

	def to_dict(self) -> dict[str, Any] | None:
		return copy.deepcopy(self._data)


class FakeDocument:
	def __init__(self, store: dict[str, dict[str, Any]], path: str) -> None:
		self._store = store
		self.path = path
		self.id = path.rsplit("/", 1)[-1]

	async def set(self, data: dict[str, Any], merge: bool = False) -> None:
		current = self._store.get(self.path, {}) if merge else {}
		self._store[self.path] = {**current, **copy.deepcopy(data)}

	async def get(self) -> FakeSnapshot:
		return FakeSnapshot(self.id, self._store.get(self.path))

	def collection(self, name: str) -> FakeCollection:
		return FakeCollection(self._store, f"{self.path}/{name}")


class FakeCollection:
	def __init__(self, store: dict[str, dict[str, Any]], path: str) -> None:
		self._store = store
		self.path = path

	def document(self, doc_id: str) -> FakeDocument:
		return FakeDocument(self._store, f"{self.path}/{doc_id}")

	async def stream(self) -> AsyncIterator[FakeSnapshot]:
		prefix = f"{self.path}/"
		for path, data in list(self._store.items()):
			rest = path[len(prefix):] if path.startswith(prefix) else None
			if rest and "/" not in rest:
				yield FakeSnapshot(rest, data)


class FakeFirestore:
	"""Path-keyed in-memory documents mirroring the async Firestore call shape."""

	def __init__(self) -> None:
		self.documents: dict[str, dict[str, Any]] = {}

	def collection(self, name: str) -> FakeCollection:
		return FakeCollection(self.documents, name)


@pytest.fixture(autouse=True)
def settings(monkeypatch: pytest.MonkeyPatch) -> Generator[Settings, None, None]:
	"""Deterministic settings for every test; no real credentials or URLs."""
	for key, value in TEST_ENV.items():
		monkeypatch.setenv(key, value)
	get_settings.cache_clear()
	yield get_settings()
	get_settings.cache_clear()


@pytest.fixture
def upstream() -> UpstreamStub:
	return UpstreamStub()


@pytest.fixture
async def http_client(upstream: UpstreamStub) -> AsyncGenerator[httpx.AsyncClient, None]:
	async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as client:
		yield client


@pytest.fixture
def fake_redis() -> FakeRedis:
	return FakeRedis()


@pytest.fixture
def fake_firestore() -> FakeFirestore:
	return FakeFirestore()


@pytest.fixture
def session() -> Session:
	return Session(uid="user-a", email="farmer@test.local", name="Asha")


@asynccontextmanager
async def _noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
	yield


@asynccontextmanager
async def _app_client(
	http_client: httpx.AsyncClient,
	fake_redis: FakeRedis | None,
	fake_firestore: FakeFirestore | None,
) -> AsyncGenerator[AsyncClient, None]:
	original_lifespan = app.router.lifespan_context
	app.router.lifespan_context = _noop_lifespan
	app.state.http_client = http_client
	app.state.redis = fake_redis
	app.state.firestore = fake_firestore

	transport = ASGITransport(app=app)
	try:
		async with AsyncClient(transport=transport, base_url="http://test") as test_client:
			yield test_client
	finally:
		app.router.lifespan_context = original_lifespan
		app.dependency_overrides.clear()
		app.state.http_client = None
		app.state.redis = None
		app.state.firestore = None


@pytest.fixture
async def client(
	http_client: httpx.AsyncClient,
	fake_redis: FakeRedis,
	fake_firestore: FakeFirestore,
	session: Session,
) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with lifespan disabled and the session dependency mocked."""

	async def override_session() -> Session:
		return session

	app.dependency_overrides[get_session] = override_session
	async with _app_client(http_client, fake_redis, fake_firestore) as test_client:
		yield test_client


@pytest.fixture
async def auth_client(
	http_client: httpx.AsyncClient,
	fake_redis: FakeRedis,
	fake_firestore: FakeFirestore,
) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with the real session dependency active."""
	async with _app_client(http_client, fake_redis, fake_firestore) as test_client:
		yield test_client
