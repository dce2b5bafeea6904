"""Object storage backends for report attachments.

`HttpBlobStorage` speaks the Vercel Blob REST API through httpx.
`LocalBlobStorage` writes into a local directory that the app serves under
`/uploads` in development.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote

import httpx

from crimereport.settings import Settings

_API_VERSION = "7"


class BlobStorageError(RuntimeError):
	"""Raised when the object store rejects or fails an operation."""


@dataclass(frozen=True, slots=True)
class StoredBlob:
	key: str
	url: str


class BlobStorage(Protocol):
	"""Interface consumed by the attachment pipeline."""

	async def put(self, key: str, data: bytes, content_type: str) -> StoredBlob:
		...

	async def delete(self, url: str) -> None:
		...

	async def aclose(self) -> None:
		...


@dataclass
class HttpBlobStorage:
	"""Public-access blob uploads over HTTPS."""

	http: httpx.AsyncClient
	token: str
	api_url: str = "https://blob.vercel-storage.com"

	def _headers(self) -> dict[str, str]:
		return {
			"authorization": f"Bearer {self.token}",
			"x-api-version": _API_VERSION,
		}

	async def put(self, key: str, data: bytes, content_type: str) -> StoredBlob:
		headers = self._headers()
		headers["x-content-type"] = content_type
		headers["x-add-random-suffix"] = "0"
		url = f"{self.api_url.rstrip('/')}/{quote(key)}"
		try:
			response = await self.http.put(url, content=data, headers=headers)
			response.raise_for_status()
			body = response.json()
		except (httpx.HTTPError, ValueError) as exc:
			raise BlobStorageError(f"put_failed:{key}") from exc
		blob_url = body.get("url") if isinstance(body, dict) else None
		if not blob_url:
			raise BlobStorageError(f"put_missing_url:{key}")
		return StoredBlob(key=key, url=str(blob_url))

	async def delete(self, url: str) -> None:
		try:
			response = await self.http.post(
				f"{self.api_url.rstrip('/')}/delete",
				json={"urls": [url]},
				headers=self._headers(),
			)
			response.raise_for_status()
		except httpx.HTTPError as exc:
			raise BlobStorageError(f"delete_failed:{url}") from exc

	async def aclose(self) -> None:
		await self.http.aclose()


@dataclass
class LocalBlobStorage:
	"""Filesystem-backed storage for local development."""

	root: Path
	base_url: str

	def _target(self, key: str) -> Path:
		root = self.root.resolve()
		target = (root / key).resolve()
		# Prevent path traversal
		if root not in target.parents:
			raise BlobStorageError(f"invalid_key:{key}")
		return target

	async def put(self, key: str, data: bytes, content_type: str) -> StoredBlob:
		target = self._target(key)
		try:
			await asyncio.to_thread(_write_bytes, target, data)
		except OSError as exc:
			raise BlobStorageError(f"put_failed:{key}") from exc
		return StoredBlob(key=key, url=f"{self.base_url.rstrip('/')}/{quote(key)}")

	async def delete(self, url: str) -> None:
		prefix = f"{self.base_url.rstrip('/')}/"
		if not url.startswith(prefix):
			raise BlobStorageError(f"foreign_url:{url}")
		target = self._target(unquote(url[len(prefix):]))
		try:
			await asyncio.to_thread(target.unlink, True)
		except OSError as exc:
			raise BlobStorageError(f"delete_failed:{url}") from exc

	async def aclose(self) -> None:
		return None


def _write_bytes(target: Path, data: bytes) -> None:
	target.parent.mkdir(parents=True, exist_ok=True)
	target.write_bytes(data)


def build_blob_storage(config: Settings) -> BlobStorage:
	"""Pick the storage backend from configuration."""
	if config.blob_read_write_token:
		client = httpx.AsyncClient(timeout=config.blob_timeout_seconds)
		return HttpBlobStorage(http=client, token=config.blob_read_write_token, api_url=config.blob_api_url)
	return LocalBlobStorage(root=Path(config.upload_dir), base_url=config.upload_base_url)
