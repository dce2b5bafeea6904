"""Pydantic schemas for the reports API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from crimereport.domain.reports import models

MESSAGE_MAX_LENGTH = 4000
SENDER_MAX_LENGTH = 120


class ReportFileOut(BaseModel):
    url: str
    original_name: str = Field(alias="originalName")

    model_config = {"populate_by_name": True}


class ReportMessageOut(BaseModel):
    text: str
    sender: str
    timestamp: datetime

    @classmethod
    def from_model(cls, message: models.ReportMessage) -> "ReportMessageOut":
        return cls(text=message.text, sender=message.sender, timestamp=message.timestamp)


class ReportOut(BaseModel):
    id: str
    reference_number: str = Field(alias="referenceNumber")
    crime_type: str = Field(alias="crimeType")
    location: str
    description: str
    is_anonymous: bool = Field(alias="isAnonymous")
    user_id: Optional[str] = Field(default=None, alias="userId")
    files: List[ReportFileOut] = Field(default_factory=list)
    messages: List[ReportMessageOut] = Field(default_factory=list)
    created_at: datetime = Field(alias="createdAt")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_model(cls, report: models.Report) -> "ReportOut":
        return cls(
            id=report.id,
            reference_number=report.reference_number,
            crime_type=report.crime_type,
            location=report.location,
            description=report.description,
            is_anonymous=report.is_anonymous,
            user_id=report.user_id,
            files=[ReportFileOut(url=item.url, original_name=item.original_name) for item in report.files],
            messages=[ReportMessageOut.from_model(item) for item in report.messages],
            created_at=report.created_at,
        )


class SubmitReportResponse(BaseModel):
    reference_number: str = Field(alias="referenceNumber")
    message: str = "Report submitted successfully"

    model_config = {"populate_by_name": True}


class MessageCreateRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=MESSAGE_MAX_LENGTH)
    sender: Optional[str] = Field(default=None, max_length=SENDER_MAX_LENGTH)


class DeleteReportResponse(BaseModel):
    id: str
    deleted: bool = True
    message: str = "Report deleted successfully"
