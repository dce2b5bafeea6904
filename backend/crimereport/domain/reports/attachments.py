"""Attachment pipeline for report submissions.

Uploads for one submission are all-or-nothing: if any object fails to store,
the objects that did make it are deleted again and the submission aborts.
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
import time
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, Sequence, Set

from crimereport.domain.exceptions import AttachmentRejected, StorageFailure
from crimereport.domain.reports.models import ReportFile
from crimereport.infra.blob import BlobStorage, BlobStorageError, StoredBlob
from crimereport.obs import metrics as obs_metrics
from crimereport.settings import Settings

LOGGER = logging.getLogger(__name__)

KEY_PREFIX = "reports"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
FALLBACK_NAME = "file"
MAX_NAME_BYTES = 255

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x80-\x9f]')
_RESERVED_NAMES = re.compile(r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$", re.IGNORECASE)
_CONTENT_TYPE = re.compile(r"^[\w.+-]+/[\w.+-]+$")


@dataclass(frozen=True, slots=True)
class UploadLimits:
	max_files: int = 5
	max_bytes: int = 10 * 1024 * 1024

	@classmethod
	def from_settings(cls, config: Settings) -> "UploadLimits":
		return cls(max_files=config.max_upload_files, max_bytes=config.max_upload_bytes)


@dataclass(frozen=True, slots=True)
class IncomingFile:
	"""An uploaded file fully read into memory."""

	filename: str
	content_type: str
	data: bytes

	@property
	def size(self) -> int:
		return len(self.data)


class UploadSource(Protocol):
	"""Subset of starlette's UploadFile consumed by read_uploads."""

	filename: Optional[str]
	content_type: Optional[str]

	async def read(self, size: int = -1) -> bytes:
		...


def sanitize_filename(name: str | None) -> str:
	"""Return a display- and storage-safe version of a client filename."""
	text = unicodedata.normalize("NFC", name or "")
	# Keep only the last path component, whatever separator the client used.
	text = re.split(r"[\\/]", text)[-1]
	text = _UNSAFE_CHARS.sub("", text)
	text = text.strip().lstrip(".").rstrip(". ")
	if text in ("", ".", ".."):
		return FALLBACK_NAME
	if _RESERVED_NAMES.match(text):
		text = f"_{text}"
	encoded = text.encode("utf-8")
	if len(encoded) > MAX_NAME_BYTES:
		text = encoded[:MAX_NAME_BYTES].decode("utf-8", errors="ignore").rstrip(". ")
	return text or FALLBACK_NAME


def build_storage_key(safe_name: str, *, now_ms: Optional[int] = None) -> str:
	"""Storage key unique per upload even when names and milliseconds collide."""
	stamp = now_ms if now_ms is not None else int(time.time() * 1000)
	return f"{KEY_PREFIX}/{stamp}-{secrets.token_hex(4)}-{safe_name}"


def _content_type(value: str | None) -> str:
	candidate = (value or "").split(";", 1)[0].strip().lower()
	if candidate and _CONTENT_TYPE.match(candidate):
		return candidate
	return DEFAULT_CONTENT_TYPE


def check_count(count: int, limits: UploadLimits) -> None:
	if count > limits.max_files:
		raise AttachmentRejected(
			"too_many_files",
			message=f"At most {limits.max_files} files may be attached",
		)


def check_file(upload: IncomingFile, limits: UploadLimits) -> None:
	if upload.size > limits.max_bytes:
		raise AttachmentRejected(
			"file_too_large",
			message=f"Each file must be at most {limits.max_bytes // (1024 * 1024)} MB",
		)
	if upload.size == 0:
		raise AttachmentRejected("empty_file", message="Attached files must not be empty")


async def read_uploads(uploads: Sequence[UploadSource], limits: UploadLimits) -> List[IncomingFile]:
	"""Read multipart uploads into memory, enforcing limits before any upload.

	Parts without a filename and without content are what browsers send for an
	empty file input; they are skipped.
	"""
	check_count(len(uploads), limits)
	incoming: List[IncomingFile] = []
	for upload in uploads:
		# Read one byte past the limit so oversize files are detected without buffering them whole.
		data = await upload.read(limits.max_bytes + 1)
		if not upload.filename and not data:
			continue
		item = IncomingFile(
			filename=upload.filename or "",
			content_type=_content_type(upload.content_type),
			data=data,
		)
		check_file(item, limits)
		incoming.append(item)
	return incoming


class AttachmentPipeline:
	"""Sanitize, key and upload attachments; undo uploads on failure."""

	def __init__(self, storage: BlobStorage, limits: UploadLimits | None = None) -> None:
		self._storage = storage
		self.limits = limits or UploadLimits()
		self._cleanup_tasks: Set[asyncio.Task] = set()

	def validate(self, files: Sequence[IncomingFile]) -> None:
		check_count(len(files), self.limits)
		for item in files:
			check_file(item, self.limits)

	async def store_all(self, files: Sequence[IncomingFile], *, reference_number: str) -> List[ReportFile]:
		"""Upload every file concurrently; result order matches input order."""
		self.validate(files)
		if not files:
			return []
		stored: List[StoredBlob] = []

		async def _upload(item: IncomingFile) -> ReportFile:
			safe_name = sanitize_filename(item.filename)
			key = build_storage_key(safe_name)
			try:
				blob = await self._storage.put(key, item.data, item.content_type)
			except BlobStorageError:
				LOGGER.warning(
					"attachment_put_failed",
					extra={"reference_number": reference_number, "storage_key": key, "size": item.size},
				)
				raise
			stored.append(blob)
			return ReportFile(url=blob.url, original_name=safe_name)

		try:
			results = await asyncio.gather(*(_upload(item) for item in files), return_exceptions=True)
		except asyncio.CancelledError:
			obs_metrics.inc_attachment_failure("cancelled")
			self.discard_in_background([blob.url for blob in stored], reference_number=reference_number)
			raise

		failures = [result for result in results if isinstance(result, BaseException)]
		if failures:
			obs_metrics.inc_attachment_failure("upload")
			LOGGER.error(
				"attachment_upload_failed",
				exc_info=failures[0],
				extra={
					"reference_number": reference_number,
					"file_count": len(files),
					"failed_count": len(failures),
				},
			)
			await self.discard([blob.url for blob in stored], reference_number=reference_number)
			raise StorageFailure(message="Failed to upload file to storage") from failures[0]
		obs_metrics.inc_attachments_uploaded(len(stored))
		return [result for result in results if isinstance(result, ReportFile)]

	async def discard(self, urls: Iterable[str], *, reference_number: str) -> None:
		"""Best-effort delete of uploaded objects; failures are logged as orphans."""
		for url in urls:
			try:
				await self._storage.delete(url)
			except BlobStorageError:
				obs_metrics.inc_orphaned_attachment()
				LOGGER.warning(
					"orphaned_attachment",
					exc_info=True,
					extra={"reference_number": reference_number, "url": url},
				)

	def discard_in_background(self, urls: Iterable[str], *, reference_number: str) -> None:
		"""Schedule cleanup that survives cancellation of the calling request."""
		pending = list(urls)
		if not pending:
			return
		task = asyncio.ensure_future(self.discard(pending, reference_number=reference_number))
		self._cleanup_tasks.add(task)
		task.add_done_callback(self._cleanup_tasks.discard)
