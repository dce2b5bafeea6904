"""AsyncPG pool management for the backend."""

from __future__ import annotations

import asyncio
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import asyncpg

from crimereport.settings import settings

_pool: Optional[asyncpg.pool.Pool] = None

# Errors a query or pool checkout can raise when the database is unhealthy.
STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)

# How long repositories stay on the memory store after a failed pool lookup.
POOL_RETRY_SECONDS = 5.0


def resolve_dsn(url: str) -> str:
	"""Point a `localhost` host at 127.0.0.1, leaving the rest of the DSN alone."""
	parts = urlsplit(url)
	if parts.hostname != "localhost":
		return url
	userinfo, at, hostport = parts.netloc.rpartition("@")
	hostport = "127.0.0.1" + hostport[len("localhost"):]
	return urlunsplit(parts._replace(netloc=f"{userinfo}{at}{hostport}"))


async def init_pool() -> asyncpg.pool.Pool:
	global _pool
	if _pool is None:
		# Force 127.0.0.1 instead of localhost to avoid IPv6 issues on Windows
		_pool = await asyncpg.create_pool(
			dsn=resolve_dsn(settings.postgres_url),
			min_size=settings.postgres_min_pool_size,
			max_size=settings.postgres_max_pool_size,
		)
	return _pool


async def get_pool() -> asyncpg.pool.Pool:
	if _pool is None:
		await init_pool()
	assert _pool is not None
	return _pool


async def close_pool() -> None:
	global _pool
	if _pool is not None:
		await _pool.close()
		_pool = None
