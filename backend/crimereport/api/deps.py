"""Dependencies exposing the services built at startup."""

from __future__ import annotations

from fastapi import Request

from crimereport.domain.reports import ReportService
from crimereport.domain.testimonials import TestimonialService


def get_report_service(request: Request) -> ReportService:
	return request.app.state.report_service


def get_testimonial_service(request: Request) -> TestimonialService:
	return request.app.state.testimonial_service
