"""Idempotent schema bootstrap executed at startup."""

from __future__ import annotations

import logging

import asyncpg

LOGGER = logging.getLogger(__name__)

_STATEMENTS = (
	"""
	CREATE TABLE IF NOT EXISTS reports (
		id               TEXT PRIMARY KEY,
		reference_number TEXT NOT NULL,
		crime_type       TEXT NOT NULL,
		location         TEXT NOT NULL,
		description      TEXT NOT NULL,
		is_anonymous     BOOLEAN NOT NULL DEFAULT FALSE,
		user_id          TEXT,
		files            JSONB NOT NULL DEFAULT '[]'::jsonb,
		messages         JSONB NOT NULL DEFAULT '[]'::jsonb,
		created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
	)
	""",
	"CREATE UNIQUE INDEX IF NOT EXISTS reports_reference_number_key ON reports (reference_number)",
	"CREATE INDEX IF NOT EXISTS reports_user_created_idx ON reports (user_id, created_at DESC)",
	"CREATE INDEX IF NOT EXISTS reports_created_idx ON reports (created_at DESC)",
	"""
	CREATE TABLE IF NOT EXISTS testimonials (
		id          TEXT PRIMARY KEY,
		text        TEXT NOT NULL,
		rating      SMALLINT NOT NULL CHECK (rating BETWEEN 1 AND 5),
		author      TEXT NOT NULL DEFAULT 'Anonymous',
		approved    BOOLEAN NOT NULL DEFAULT FALSE,
		created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
	)
	""",
	"CREATE INDEX IF NOT EXISTS testimonials_approved_created_idx ON testimonials (approved, created_at DESC)",
)


async def ensure_schema(pool: asyncpg.Pool | None) -> None:
	"""Create the reports and testimonials tables when missing."""
	if pool is None:
		return
	async with pool.acquire() as conn:
		async with conn.transaction():
			for statement in _STATEMENTS:
				await conn.execute(statement)
	LOGGER.info("schema_ready")
