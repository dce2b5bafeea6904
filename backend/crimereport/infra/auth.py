"""Authentication helpers for FastAPI endpoints.

Caller identity is resolved once per request at the boundary:
- `get_optional_user` never rejects; a bad token means "anonymous".
- `get_current_user` requires a valid bearer JWT.
- `get_officer_user` additionally requires an officer role claim.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWTError

from crimereport.infra import jwt as jwt_helper
from crimereport.settings import settings

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	roles: Tuple[str, ...] = ()
	display_name: Optional[str] = None

	def has_role(self, role: str) -> bool:
		return role.lower() in self.roles

	@property
	def is_officer(self) -> bool:
		return any(self.has_role(role) for role in settings.officer_roles)


class InvalidCredentials(Exception):
	"""Raised when a bearer token cannot be verified."""


_bearer_scheme = HTTPBearer(auto_error=False)


def _parse_roles(claim: object) -> Tuple[str, ...]:
	if isinstance(claim, (list, tuple)):
		return tuple(str(r).strip().lower() for r in claim if str(r).strip())
	if isinstance(claim, str):
		return tuple(part.strip().lower() for part in claim.split(",") if part.strip())
	return ()


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode and validate an access JWT and return an AuthenticatedUser.

	Raises InvalidCredentials for every decode or claim failure.
	"""
	try:
		payload = jwt_helper.decode_access(token)
	except PyJWTError as exc:
		raise InvalidCredentials(str(exc)) from exc

	sub = str(payload.get("sub") or payload.get("userId") or "").strip()
	if not sub:
		raise InvalidCredentials("missing_subject")
	display_name = payload.get("name") or payload.get("display_name")
	return AuthenticatedUser(
		id=sub,
		roles=_parse_roles(payload.get("roles") or payload.get("role")),
		display_name=str(display_name) if display_name is not None else None,
	)


async def get_optional_user(
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[AuthenticatedUser]:
	"""Resolve the caller if a valid bearer token is present, else None."""
	if not credentials or credentials.scheme.lower() != "bearer":
		return None
	try:
		return verify_access_jwt(credentials.credentials)
	except InvalidCredentials as exc:
		LOGGER.info("optional_auth_rejected", extra={"reason": str(exc)})
		return None


async def get_current_user(
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the authenticated user or refuse the request."""
	if not credentials or credentials.scheme.lower() != "bearer":
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication_required")
	try:
		return verify_access_jwt(credentials.credentials)
	except InvalidCredentials:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")


async def get_officer_user(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
	if user.is_officer:
		return user
	raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_role")
