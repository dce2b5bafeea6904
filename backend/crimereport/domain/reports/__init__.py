"""Crime report domain: identity, access policy, attachments and lifecycle."""

from crimereport.domain.reports.service import ReportService

__all__ = ["ReportService"]
