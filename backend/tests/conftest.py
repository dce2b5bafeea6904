import os
import sys
from pathlib import Path
from typing import Dict, List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")

from crimereport.domain.reports import ReportService
from crimereport.domain.reports import repo as report_repo
from crimereport.domain.testimonials import service as testimonial_service
from crimereport.infra import jwt as jwt_helper
from crimereport.infra import postgres
from crimereport.infra.blob import BlobStorageError, StoredBlob
from crimereport.main import app
from crimereport.settings import settings


class FakeBlobStorage:
	"""In-process object store recording every put and delete."""

	def __init__(self) -> None:
		self.objects: Dict[str, bytes] = {}
		self.content_types: Dict[str, str] = {}
		self.deleted: List[str] = []
		self.fail_on: set[str] = set()
		self.fail_deletes = False
		self.put_calls = 0

	def _url(self, key: str) -> str:
		return f"https://blob.test/{key}"

	async def put(self, key: str, data: bytes, content_type: str) -> StoredBlob:
		self.put_calls += 1
		if any(marker in key for marker in self.fail_on):
			raise BlobStorageError(f"put_failed:{key}")
		url = self._url(key)
		self.objects[url] = data
		self.content_types[url] = content_type
		return StoredBlob(key=key, url=url)

	async def delete(self, url: str) -> None:
		if self.fail_deletes:
			raise BlobStorageError(f"delete_failed:{url}")
		self.deleted.append(url)
		self.objects.pop(url, None)

	async def aclose(self) -> None:
		return None


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from crimereport.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Run every test against the development store with default limits."""
	original_env = settings.environment
	original_roles = settings.officer_roles
	settings.environment = "dev"
	settings.officer_roles = ("officer", "admin")
	try:
		yield
	finally:
		settings.environment = original_env
		settings.officer_roles = original_roles


@pytest.fixture(autouse=True)
def reset_stores():
	report_repo.reset_memory_store()
	testimonial_service.reset_memory_store()
	yield
	report_repo.reset_memory_store()
	testimonial_service.reset_memory_store()


@pytest.fixture
def blob_storage() -> FakeBlobStorage:
	return FakeBlobStorage()


@pytest.fixture
def report_service(blob_storage) -> ReportService:
	return ReportService.from_settings(settings, blob_storage)


@pytest.fixture
def install_report_service(report_service):
	original = app.state.report_service
	app.state.report_service = report_service
	try:
		yield report_service
	finally:
		app.state.report_service = original


@pytest_asyncio.fixture
async def api_client(install_report_service):
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


@pytest.fixture
def auth_headers():
	"""Build a bearer header for a user, optionally carrying a roles claim."""

	def _build(user_id: str, *, roles=None, **claims) -> Dict[str, str]:
		payload = {"sub": user_id, **claims}
		if roles is not None:
			payload["roles"] = roles
		return {"Authorization": f"Bearer {jwt_helper.encode_access(payload)}"}

	return _build
