"""Access policy for report operations."""

from __future__ import annotations

import logging
from typing import Optional

from redis.exceptions import RedisError

from crimereport.domain.exceptions import ForbiddenError, RateLimited
from crimereport.domain.reports import models
from crimereport.infra import rate_limit
from crimereport.infra.auth import AuthenticatedUser

LOGGER = logging.getLogger(__name__)

ACTOR_OWNER = "owner"
ACTOR_OFFICER = "officer"


def resolve_owner(caller: Optional[AuthenticatedUser], *, is_anonymous: bool) -> Optional[str]:
	"""Owner recorded on a new report; anonymity always wins."""
	if is_anonymous or caller is None:
		return None
	return caller.id


def ensure_officer(user: AuthenticatedUser) -> None:
	if not user.is_officer:
		raise ForbiddenError("insufficient_role", message="Officer role required")


def ensure_can_delete(report: models.Report, user: AuthenticatedUser) -> str:
	"""Return the capacity in which `user` may delete `report`.

	Owners delete their own reports. Unowned reports, and reports owned by
	someone else, need the officer claim.
	"""
	if report.is_owned_by(user.id):
		return ACTOR_OWNER
	if user.is_officer:
		return ACTOR_OFFICER
	raise ForbiddenError("forbidden", message="Not authorized to delete this report")


async def enforce_message_limit(reference_number: str, *, limit: int, window_seconds: int) -> None:
	"""Throttle the public message channel per reference number.

	Redis outages do not close the channel; the check is skipped and logged.
	"""
	try:
		allowed = await rate_limit.allow(
			"report_message",
			reference_number,
			limit=limit,
			window_seconds=window_seconds,
		)
	except RedisError:
		LOGGER.warning("message_rate_limit_unavailable", exc_info=True, extra={"reference_number": reference_number})
		return
	if not allowed:
		raise RateLimited(message="Too many messages for this report, try again later")
