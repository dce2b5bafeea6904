"""FastAPI routes for crime reports and their message threads."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status

from crimereport.api.deps import get_report_service
from crimereport.domain.reports import ReportService, schemas
from crimereport.domain.reports.attachments import read_uploads
from crimereport.domain.reports.models import ReportFields
from crimereport.infra.auth import AuthenticatedUser, get_current_user, get_officer_user, get_optional_user
from crimereport.obs.audit import log_privileged_action
from crimereport.settings import is_true

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("", response_model=schemas.SubmitReportResponse, status_code=status.HTTP_201_CREATED)
async def submit_report_endpoint(
	crime_type: str = Form(default="", alias="crimeType"),
	location: str = Form(default=""),
	description: str = Form(default=""),
	is_anonymous: Optional[str] = Form(default=None, alias="isAnonymous"),
	files: Optional[List[UploadFile]] = File(default=None),
	caller: Optional[AuthenticatedUser] = Depends(get_optional_user),
	service: ReportService = Depends(get_report_service),
) -> schemas.SubmitReportResponse:
	incoming = await read_uploads(files or [], service.limits)
	fields = ReportFields(
		crime_type=crime_type,
		location=location,
		description=description,
		is_anonymous=is_true(is_anonymous),
	)
	report = await service.submit(fields, incoming, caller)
	return schemas.SubmitReportResponse(reference_number=report.reference_number)


@router.get("/user", response_model=List[schemas.ReportOut])
async def list_own_reports_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ReportService = Depends(get_report_service),
) -> List[schemas.ReportOut]:
	reports = await service.list_own(auth_user)
	return [schemas.ReportOut.from_model(report) for report in reports]


@router.get("", response_model=List[schemas.ReportOut])
async def list_all_reports_endpoint(
	auth_user: AuthenticatedUser = Depends(get_officer_user),
	service: ReportService = Depends(get_report_service),
) -> List[schemas.ReportOut]:
	reports = await service.list_all(auth_user)
	return [schemas.ReportOut.from_model(report) for report in reports]


@router.get("/{reference_number}", response_model=schemas.ReportOut)
async def get_report_endpoint(
	reference_number: str,
	service: ReportService = Depends(get_report_service),
) -> schemas.ReportOut:
	report = await service.get_by_reference(reference_number)
	return schemas.ReportOut.from_model(report)


@router.delete("/{report_id}", response_model=schemas.DeleteReportResponse)
async def delete_report_endpoint(
	report_id: str,
	request: Request,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ReportService = Depends(get_report_service),
) -> schemas.DeleteReportResponse:
	report, actor = await service.delete(report_id, auth_user)
	log_privileged_action(
		request,
		auth_user,
		"report.delete",
		extra={"report_id": report.id, "reference_number": report.reference_number, "actor": actor},
	)
	return schemas.DeleteReportResponse(id=report.id)


@router.post(
	"/{reference_number}/messages",
	response_model=schemas.ReportMessageOut,
	status_code=status.HTTP_201_CREATED,
)
async def append_message_endpoint(
	reference_number: str,
	payload: schemas.MessageCreateRequest,
	service: ReportService = Depends(get_report_service),
) -> schemas.ReportMessageOut:
	message = await service.append_message(reference_number, payload.message, payload.sender)
	return schemas.ReportMessageOut.from_model(message)
