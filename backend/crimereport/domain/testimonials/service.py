"""Testimonial moderation service layer."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional

import asyncpg
import ulid

from crimereport.domain.exceptions import NotFoundError, StorageFailure, ValidationError
from crimereport.domain.reports.policy import ensure_officer
from crimereport.domain.testimonials import models
from crimereport.infra.auth import AuthenticatedUser
from crimereport.infra.postgres import POOL_RETRY_SECONDS, STORE_ERRORS, get_pool
from crimereport.obs import metrics as obs_metrics
from crimereport.settings import Settings, settings

LOGGER = logging.getLogger(__name__)
LIST_LIMIT = 10


class _MemoryStore:
	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.items: Dict[str, models.Testimonial] = {}

	async def insert(self, testimonial: models.Testimonial) -> None:
		async with self._lock:
			self.items[testimonial.id] = replace(testimonial)

	async def list_approved(self, limit: int) -> List[models.Testimonial]:
		async with self._lock:
			rows = [replace(item) for item in self.items.values() if item.approved]
		rows.sort(key=lambda item: (item.created_at, item.id), reverse=True)
		return rows[:limit]

	async def approve(self, testimonial_id: str) -> Optional[models.Testimonial]:
		async with self._lock:
			item = self.items.get(testimonial_id)
			if item is None:
				return None
			item.approved = True
			return replace(item)

	def clear(self) -> None:
		self.items.clear()


_MEMORY = _MemoryStore()


def reset_memory_store() -> None:
	_MEMORY.clear()


def _row_to_testimonial(row: asyncpg.Record) -> models.Testimonial:
	return models.Testimonial(
		id=str(row["id"]),
		text=row["text"],
		rating=int(row["rating"]),
		author=row["author"],
		approved=bool(row["approved"]),
		created_at=row["created_at"],
	)


class TestimonialRepository:
	def __init__(self, config: Settings | None = None) -> None:
		self._config = config or settings
		self._pool_instance: Optional[asyncpg.Pool] = None
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
			if self.allows_memory_fallback:
				self._retry_at = time.monotonic() + POOL_RETRY_SECONDS
				return None
			LOGGER.error("testimonial_store_unavailable", exc_info=True)
			raise StorageFailure(message="Testimonial store is unavailable") from exc
		self._pool_instance = pool
		return pool

	async def insert(self, testimonial: models.Testimonial) -> None:
		pool = await self._get_pool()
		if pool is None:
			await _MEMORY.insert(testimonial)
			return
		try:
			async with pool.acquire() as conn:
				await conn.execute(
					"""
					INSERT INTO testimonials (id, text, rating, author, approved, created_at)
					VALUES ($1,$2,$3,$4,$5,$6)
					""",
					testimonial.id,
					testimonial.text,
					testimonial.rating,
					testimonial.author,
					testimonial.approved,
					testimonial.created_at,
				)
		except STORE_ERRORS as exc:
			LOGGER.error("testimonial_insert_failed", exc_info=True)
			raise StorageFailure(message="Failed to save testimonial") from exc

	async def list_approved(self, limit: int) -> List[models.Testimonial]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.list_approved(limit)
		try:
			async with pool.acquire() as conn:
				rows = await conn.fetch(
					"""
					SELECT id, text, rating, author, approved, created_at
					FROM testimonials
					WHERE approved = TRUE
					ORDER BY created_at DESC, id DESC
					LIMIT $1
					""",
					limit,
				)
		except STORE_ERRORS as exc:
			LOGGER.error("testimonial_query_failed", exc_info=True)
			raise StorageFailure(message="Failed to read testimonials") from exc
		return [_row_to_testimonial(row) for row in rows]

	async def approve(self, testimonial_id: str) -> Optional[models.Testimonial]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.approve(testimonial_id)
		try:
			async with pool.acquire() as conn:
				row = await conn.fetchrow(
					"""
					UPDATE testimonials SET approved = TRUE
					WHERE id = $1
					RETURNING id, text, rating, author, approved, created_at
					""",
					testimonial_id,
				)
		except STORE_ERRORS as exc:
			LOGGER.error("testimonial_approve_failed", exc_info=True, extra={"testimonial_id": testimonial_id})
			raise StorageFailure(message="Failed to approve testimonial") from exc
		return _row_to_testimonial(row) if row else None


class TestimonialService:
	def __init__(self, repository: TestimonialRepository | None = None) -> None:
		self.repository = repository or TestimonialRepository()

	async def list_approved(self, limit: int = LIST_LIMIT) -> List[models.Testimonial]:
		return await self.repository.list_approved(max(1, min(limit, LIST_LIMIT)))

	async def create(self, text: str, rating: int, author: Optional[str] = None) -> models.Testimonial:
		body = (text or "").strip()
		errors = []
		if not body:
			errors.append({"field": "text", "message": "Testimonial text is required"})
		if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
			errors.append({"field": "rating", "message": "Rating must be between 1 and 5"})
		if errors:
			raise ValidationError(errors)
		testimonial = models.Testimonial(
			id=ulid.new().str,
			text=body,
			rating=rating,
			author=(author or "").strip() or models.DEFAULT_AUTHOR,
			approved=False,
			created_at=datetime.now(timezone.utc),
		)
		await self.repository.insert(testimonial)
		obs_metrics.inc_testimonial("created")
		return testimonial

	async def approve(self, testimonial_id: str, user: AuthenticatedUser) -> models.Testimonial:
		ensure_officer(user)
		testimonial = await self.repository.approve(testimonial_id)
		if testimonial is None:
			raise NotFoundError("testimonial_not_found", message="Testimonial not found")
		obs_metrics.inc_testimonial("approved")
		return testimonial
