"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"crimereport_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"crimereport_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

REPORTS_SUBMITTED = Counter(
	"crimereport_reports_submitted_total",
	"Reports persisted",
	["anonymous"],
)

REPORTS_DELETED = Counter(
	"crimereport_reports_deleted_total",
	"Reports deleted",
	["actor"],
)

REPORT_MESSAGES = Counter(
	"crimereport_report_messages_total",
	"Messages appended to report threads",
)

ATTACHMENTS_UPLOADED = Counter(
	"crimereport_attachments_uploaded_total",
	"Attachment objects written to object storage",
)

ATTACHMENT_FAILURES = Counter(
	"crimereport_attachment_failures_total",
	"Attachment pipeline failures",
	["stage"],
)

ORPHANED_ATTACHMENTS = Counter(
	"crimereport_orphaned_attachments_total",
	"Uploaded objects that could not be removed after a failed submission",
)

TESTIMONIALS = Counter(
	"crimereport_testimonials_total",
	"Testimonial lifecycle events",
	["event"],
)

REDIS_UP = Gauge("crimereport_redis_up", "Redis readiness (1 = ok)")
POSTGRES_UP = Gauge("crimereport_postgres_up", "Postgres readiness (1 = ok)")


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_report_submitted(anonymous: bool) -> None:
	REPORTS_SUBMITTED.labels(anonymous=str(bool(anonymous)).lower()).inc()


def inc_report_deleted(actor: str) -> None:
	REPORTS_DELETED.labels(actor=actor).inc()


def inc_report_message() -> None:
	REPORT_MESSAGES.inc()


def inc_attachments_uploaded(count: int = 1) -> None:
	ATTACHMENTS_UPLOADED.inc(count)


def inc_attachment_failure(stage: str) -> None:
	ATTACHMENT_FAILURES.labels(stage=stage).inc()


def inc_orphaned_attachment() -> None:
	ORPHANED_ATTACHMENTS.inc()


def inc_testimonial(event: str) -> None:
	TESTIMONIALS.labels(event=event).inc()


def mark_redis(ok: bool) -> None:
	REDIS_UP.set(1 if ok else 0)


def mark_postgres(ok: bool) -> None:
	POSTGRES_UP.set(1 if ok else 0)
