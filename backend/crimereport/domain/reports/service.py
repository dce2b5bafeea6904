"""Report lifecycle service layer."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import ulid

from crimereport.domain.exceptions import NotFoundError, ReferenceUnavailable, StorageFailure, ValidationError
from crimereport.domain.reports import models, policy
from crimereport.domain.reports.attachments import AttachmentPipeline, IncomingFile, UploadLimits
from crimereport.domain.reports.reference import new_reference_number, normalize_reference
from crimereport.domain.reports.repo import DuplicateReference, ReportRepository
from crimereport.infra.auth import AuthenticatedUser
from crimereport.infra.blob import BlobStorage
from crimereport.obs import metrics as obs_metrics
from crimereport.settings import Settings

LOGGER = logging.getLogger(__name__)

_REQUIRED_FIELDS = (
	("crime_type", "crimeType", "Crime type is required"),
	("location", "location", "Location is required"),
	("description", "description", "Description is required"),
)
_REFERENCE_ATTEMPTS = 3
DEFAULT_SENDER = "anonymous"


def _now() -> datetime:
	return datetime.now(timezone.utc)


def clean_fields(fields: models.ReportFields) -> models.ReportFields:
	"""Trim the free-text fields and collect every missing one."""
	cleaned: Dict[str, str] = {}
	errors: List[Dict[str, str]] = []
	for attr, field_name, message in _REQUIRED_FIELDS:
		value = (getattr(fields, attr) or "").strip()
		if not value:
			errors.append({"field": field_name, "message": message})
		cleaned[attr] = value
	if errors:
		raise ValidationError(errors)
	return models.ReportFields(is_anonymous=bool(fields.is_anonymous), **cleaned)


class ReportService:
	def __init__(
		self,
		repository: ReportRepository,
		attachments: AttachmentPipeline,
		*,
		message_limit: int = 30,
		message_window_seconds: int = 60,
	) -> None:
		self.repository = repository
		self.attachments = attachments
		self.message_limit = message_limit
		self.message_window_seconds = message_window_seconds

	@classmethod
	def from_settings(cls, config: Settings, storage: BlobStorage) -> "ReportService":
		return cls(
			ReportRepository(config),
			AttachmentPipeline(storage, UploadLimits.from_settings(config)),
			message_limit=config.message_rate_limit,
			message_window_seconds=config.message_rate_window_seconds,
		)

	@property
	def limits(self) -> UploadLimits:
		return self.attachments.limits

	async def submit(
		self,
		fields: models.ReportFields,
		files: Sequence[IncomingFile],
		caller: Optional[AuthenticatedUser] = None,
	) -> models.Report:
		"""Validate, upload attachments, then persist one report.

		Nothing is persisted unless every attachment was stored. Uploaded objects
		are removed again when the insert fails or the request is cancelled.
		"""
		cleaned = clean_fields(fields)
		self.attachments.validate(files)
		reference_number = new_reference_number()
		stored = await self.attachments.store_all(files, reference_number=reference_number)
		report = models.Report(
			id=ulid.new().str,
			reference_number=reference_number,
			crime_type=cleaned.crime_type,
			location=cleaned.location,
			description=cleaned.description,
			is_anonymous=cleaned.is_anonymous,
			user_id=policy.resolve_owner(caller, is_anonymous=cleaned.is_anonymous),
			created_at=_now(),
			files=stored,
		)
		urls = [item.url for item in stored]
		try:
			await self._insert(report)
		except asyncio.CancelledError:
			self.attachments.discard_in_background(urls, reference_number=report.reference_number)
			raise
		except Exception as exc:
			obs_metrics.inc_attachment_failure("persist")
			if not isinstance(exc, StorageFailure):
				LOGGER.error(
					"report_persist_failed",
					exc_info=True,
					extra={"reference_number": report.reference_number, "file_count": len(urls)},
				)
			await self.attachments.discard(urls, reference_number=report.reference_number)
			raise
		obs_metrics.inc_report_submitted(report.is_anonymous)
		LOGGER.info(
			"report_submitted",
			extra={
				"reference_number": report.reference_number,
				"file_count": len(report.files),
				"owned": report.is_owned,
			},
		)
		return report

	async def _insert(self, report: models.Report) -> None:
		for attempt in range(1, _REFERENCE_ATTEMPTS + 1):
			try:
				await self.repository.insert(report)
				return
			except DuplicateReference:
				LOGGER.warning(
					"reference_collision",
					extra={"reference_number": report.reference_number, "attempt": attempt},
				)
				report.reference_number = new_reference_number()
		raise ReferenceUnavailable()

	async def list_own(self, user: AuthenticatedUser) -> List[models.Report]:
		return await self.repository.list_by_owner(user.id)

	async def list_all(self, user: AuthenticatedUser) -> List[models.Report]:
		policy.ensure_officer(user)
		return await self.repository.list_all()

	async def get_by_reference(self, raw_reference: str) -> models.Report:
		reference_number = normalize_reference(raw_reference)
		report = await self.repository.get_by_reference(reference_number) if reference_number else None
		if report is None:
			raise NotFoundError("report_not_found", message="Case not found")
		return report

	async def delete(self, report_id: str, user: AuthenticatedUser) -> Tuple[models.Report, str]:
		"""Delete a report the caller owns, or any report as an officer.

		Returns the deleted report and the capacity the caller acted in.
		"""
		report = await self.repository.get_by_id(report_id)
		if report is None:
			raise NotFoundError("report_not_found", message="Report not found")
		actor = policy.ensure_can_delete(report, user)
		if not await self.repository.delete(report.id):
			raise NotFoundError("report_not_found", message="Report not found")
		obs_metrics.inc_report_deleted(actor)
		await self.attachments.discard(
			[item.url for item in report.files],
			reference_number=report.reference_number,
		)
		return report, actor

	async def append_message(self, raw_reference: str, text: str, sender: Optional[str] = None) -> models.ReportMessage:
		reference_number = normalize_reference(raw_reference)
		body = (text or "").strip()
		if not body:
			raise ValidationError([{"field": "message", "message": "Message text is required"}])
		if not reference_number:
			raise NotFoundError("report_not_found", message="Case not found")
		await policy.enforce_message_limit(
			reference_number,
			limit=self.message_limit,
			window_seconds=self.message_window_seconds,
		)
		message = models.ReportMessage(
			text=body,
			sender=(sender or "").strip() or DEFAULT_SENDER,
			timestamp=_now(),
		)
		if not await self.repository.append_message(reference_number, message):
			raise NotFoundError("report_not_found", message="Case not found")
		obs_metrics.inc_report_message()
		return message
