"""Report persistence: asyncpg with an in-memory store for development."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional

import asyncpg

from crimereport.domain.exceptions import StorageFailure
from crimereport.domain.reports import models
from crimereport.infra.postgres import POOL_RETRY_SECONDS, STORE_ERRORS, get_pool
from crimereport.obs import metrics as obs_metrics
from crimereport.settings import Settings, settings

LOGGER = logging.getLogger(__name__)


class DuplicateReference(Exception):
	"""Insert collided with an existing reference number."""


def _copy(report: models.Report) -> models.Report:
	return replace(report, files=list(report.files), messages=list(report.messages))


class _MemoryStore:
	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.reports: Dict[str, models.Report] = {}
		self.by_reference: Dict[str, str] = {}

	async def insert(self, report: models.Report) -> None:
		async with self._lock:
			if report.reference_number in self.by_reference:
				raise DuplicateReference(report.reference_number)
			self.reports[report.id] = _copy(report)
			self.by_reference[report.reference_number] = report.id

	async def get_by_id(self, report_id: str) -> Optional[models.Report]:
		async with self._lock:
			report = self.reports.get(report_id)
			return _copy(report) if report else None

	async def get_by_reference(self, reference_number: str) -> Optional[models.Report]:
		async with self._lock:
			report_id = self.by_reference.get(reference_number)
			report = self.reports.get(report_id) if report_id else None
			return _copy(report) if report else None

	async def list_reports(self, user_id: Optional[str] = None) -> List[models.Report]:
		async with self._lock:
			rows = [
				_copy(report)
				for report in self.reports.values()
				if user_id is None or report.user_id == user_id
			]
		rows.sort(key=lambda report: (report.created_at, report.id), reverse=True)
		return rows

	async def delete(self, report_id: str) -> bool:
		async with self._lock:
			report = self.reports.pop(report_id, None)
			if report is None:
				return False
			self.by_reference.pop(report.reference_number, None)
			return True

	async def append_message(self, reference_number: str, message: models.ReportMessage) -> bool:
		async with self._lock:
			report_id = self.by_reference.get(reference_number)
			if report_id is None:
				return False
			self.reports[report_id].messages.append(message)
			return True

	def clear(self) -> None:
		self.reports.clear()
		self.by_reference.clear()


_MEMORY = _MemoryStore()


def reset_memory_store() -> None:
	_MEMORY.clear()


def _json_list(value: Any) -> List[Dict[str, Any]]:
	if value is None:
		return []
	if isinstance(value, (str, bytes)):
		value = json.loads(value)
	return list(value) if isinstance(value, list) else []


def _row_to_report(row: asyncpg.Record) -> models.Report:
	return models.Report(
		id=str(row["id"]),
		reference_number=str(row["reference_number"]),
		crime_type=row["crime_type"],
		location=row["location"],
		description=row["description"],
		is_anonymous=bool(row["is_anonymous"]),
		user_id=str(row["user_id"]) if row["user_id"] is not None else None,
		created_at=row["created_at"],
		files=[models.ReportFile.from_dict(item) for item in _json_list(row["files"])],
		messages=[models.ReportMessage.from_dict(item) for item in _json_list(row["messages"])],
	)


_COLUMNS = "id, reference_number, crime_type, location, description, is_anonymous, user_id, files, messages, created_at"


class ReportRepository:
	"""Report store.

	Falls back to the process-local memory store when Postgres is unreachable,
	but only in development or when `memory_store_fallback` is set. Anywhere
	else an unreachable database is a `StorageFailure`.
	"""

	def __init__(self, config: Settings | None = None) -> None:
		self._config = config or settings
		self._pool_instance: Optional[asyncpg.Pool] = None
		self._fallback_logged = False
		self._retry_at = 0.0

	@property
	def allows_memory_fallback(self) -> bool:
		return self._config.is_dev() or bool(self._config.memory_store_fallback)

	async def _get_pool(self) -> Optional[asyncpg.Pool]:
		if self._pool_instance is not None:
			return self._pool_instance
		if self.allows_memory_fallback and time.monotonic() < self._retry_at:
			return None
		try:
			pool = await get_pool()
		except Exception as exc:
			obs_metrics.mark_postgres(False)
			if not self.allows_memory_fallback:
				LOGGER.error("report_store_unavailable", exc_info=True)
				raise StorageFailure(message="Report store is unavailable") from exc
			self._retry_at = time.monotonic() + POOL_RETRY_SECONDS
			if not self._fallback_logged:
				LOGGER.warning("report_store_memory_fallback", extra={"reason": type(exc).__name__})
				self._fallback_logged = True
			return None
		self._pool_instance = pool
		return pool

	async def insert(self, report: models.Report) -> None:
		pool = await self._get_pool()
		if pool is None:
			await _MEMORY.insert(report)
			return
		try:
			async with pool.acquire() as conn:
				await conn.execute(
					"""
					INSERT INTO reports (id, reference_number, crime_type, location, description,
						is_anonymous, user_id, files, messages, created_at)
					VALUES ($1,$2,$3,$4,$5,$6,$7,$8::jsonb,$9::jsonb,$10)
					""",
					report.id,
					report.reference_number,
					report.crime_type,
					report.location,
					report.description,
					report.is_anonymous,
					report.user_id,
					json.dumps([item.to_dict() for item in report.files]),
					json.dumps([item.to_dict() for item in report.messages]),
					report.created_at,
				)
		except asyncpg.UniqueViolationError as exc:
			raise DuplicateReference(report.reference_number) from exc
		except STORE_ERRORS as exc:
			LOGGER.error(
				"report_insert_failed",
				exc_info=True,
				extra={"reference_number": report.reference_number, "file_count": len(report.files)},
			)
			raise StorageFailure(message="Failed to save report") from exc

	async def get_by_id(self, report_id: str) -> Optional[models.Report]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.get_by_id(report_id)
		row = await self._fetchrow(pool, f"SELECT {_COLUMNS} FROM reports WHERE id = $1", report_id)
		return _row_to_report(row) if row else None

	async def get_by_reference(self, reference_number: str) -> Optional[models.Report]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.get_by_reference(reference_number)
		row = await self._fetchrow(
			pool,
			f"SELECT {_COLUMNS} FROM reports WHERE reference_number = $1",
			reference_number,
		)
		return _row_to_report(row) if row else None

	async def list_by_owner(self, user_id: str) -> List[models.Report]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.list_reports(user_id)
		rows = await self._fetch(
			pool,
			f"SELECT {_COLUMNS} FROM reports WHERE user_id = $1 ORDER BY created_at DESC, id DESC",
			user_id,
		)
		return [_row_to_report(row) for row in rows]

	async def list_all(self) -> List[models.Report]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.list_reports()
		rows = await self._fetch(pool, f"SELECT {_COLUMNS} FROM reports ORDER BY created_at DESC, id DESC")
		return [_row_to_report(row) for row in rows]

	async def delete(self, report_id: str) -> bool:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.delete(report_id)
		try:
			async with pool.acquire() as conn:
				row = await conn.fetchrow("DELETE FROM reports WHERE id = $1 RETURNING id", report_id)
		except STORE_ERRORS as exc:
			LOGGER.error("report_delete_failed", exc_info=True, extra={"report_id": report_id})
			raise StorageFailure(message="Failed to delete report") from exc
		return row is not None

	async def append_message(self, reference_number: str, message: models.ReportMessage) -> bool:
		"""Append one message in a single statement; False when the report is missing."""
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.append_message(reference_number, message)
		try:
			async with pool.acquire() as conn:
				row = await conn.fetchrow(
					"""
					UPDATE reports
					SET messages = messages || jsonb_build_array($2::jsonb)
					WHERE reference_number = $1
					RETURNING id
					""",
					reference_number,
					json.dumps(message.to_dict()),
				)
		except STORE_ERRORS as exc:
			LOGGER.error("report_message_failed", exc_info=True, extra={"reference_number": reference_number})
			raise StorageFailure(message="Failed to save message") from exc
		return row is not None

	async def _fetchrow(self, pool: asyncpg.Pool, query: str, *args: Any) -> Optional[asyncpg.Record]:
		try:
			async with pool.acquire() as conn:
				return await conn.fetchrow(query, *args)
		except STORE_ERRORS as exc:
			LOGGER.error("report_query_failed", exc_info=True)
			raise StorageFailure(message="Failed to read reports") from exc

	async def _fetch(self, pool: asyncpg.Pool, query: str, *args: Any) -> List[asyncpg.Record]:
		try:
			async with pool.acquire() as conn:
				return list(await conn.fetch(query, *args))
		except STORE_ERRORS as exc:
			LOGGER.error("report_query_failed", exc_info=True)
			raise StorageFailure(message="Failed to read reports") from exc
