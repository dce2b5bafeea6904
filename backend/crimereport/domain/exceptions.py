"""Domain exceptions translated to HTTP responses by the API layer."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import status


class DomainError(Exception):
	"""Base class for report and testimonial errors.

	`detail` is the stable machine-checkable code, `message` the human text.
	"""

	status_code: int = status.HTTP_400_BAD_REQUEST
	detail: str = "domain_error"
	message: str = "Request could not be processed"

	def __init__(self, detail: str | None = None, *, message: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail
		if message:
			self.message = message

	def to_payload(self) -> Dict[str, Any]:
		return {"detail": self.detail, "message": self.message}


class ValidationError(DomainError):
	"""Raised when required fields are missing or malformed."""

	detail = "validation_error"
	message = "One or more fields are invalid"

	def __init__(self, errors: Optional[List[Dict[str, str]]] = None, *, message: str | None = None) -> None:
		super().__init__(message=message)
		self.errors: List[Dict[str, str]] = list(errors or [])

	def to_payload(self) -> Dict[str, Any]:
		payload = super().to_payload()
		payload["errors"] = self.errors
		return payload


class AttachmentRejected(DomainError):
	"""Raised when uploaded files break the count or size limits."""

	detail = "attachment_rejected"
	message = "Attachments were rejected"


class ForbiddenError(DomainError):
	"""Raised when authorization fails."""

	status_code = status.HTTP_403_FORBIDDEN
	detail = "forbidden"
	message = "Not authorized to perform this action"


class NotFoundError(DomainError):
	"""Thrown when a resource is missing."""

	status_code = status.HTTP_404_NOT_FOUND
	detail = "not_found"
	message = "Resource not found"


class RateLimited(DomainError):
	status_code = status.HTTP_429_TOO_MANY_REQUESTS
	detail = "rate_limited"
	message = "Too many requests, try again later"


class StorageFailure(DomainError):
	"""Raised when object storage or the database cannot complete a write."""

	status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
	detail = "storage_failure"
	message = "Storage is unavailable, nothing was saved"


class ReferenceUnavailable(StorageFailure):
	"""Raised when no reference number could be generated."""

	detail = "reference_unavailable"
	message = "Could not allocate a reference number"
