"""FastAPI application entrypoint for the crime report backend."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from crimereport.api import ops, reports, testimonials
from crimereport.api.errors import install_error_handlers
from crimereport.api.middleware_request_id import RequestIdMiddleware
from crimereport.domain.reports import ReportService
from crimereport.domain.testimonials import TestimonialService
from crimereport.domain.testimonials.service import TestimonialRepository
from crimereport.infra import postgres
from crimereport.infra.blob import LocalBlobStorage, build_blob_storage
from crimereport.infra.schema import ensure_schema
from crimereport.obs import init as obs_init
from crimereport.settings import settings

LOGGER = logging.getLogger(__name__)

PRODUCTION_ORIGIN = "https://crime-report-fronted.vercel.app"
DEV_ORIGINS = [
	"http://localhost:3000",
	"http://127.0.0.1:3000",
	"http://localhost:5173",
	"http://127.0.0.1:5173",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
	try:
		pool = await postgres.init_pool()
	except Exception:
		if not (settings.is_dev() or settings.memory_store_fallback):
			raise
		LOGGER.warning("postgres_unavailable_using_memory_store", exc_info=True)
		pool = None
	await ensure_schema(pool)
	try:
		yield
	finally:
		await app.state.blob_storage.aclose()
		await postgres.close_pool()


app = FastAPI(title="Crime Report API", lifespan=lifespan)
install_error_handlers(app, settings)

blob_storage = build_blob_storage(settings)
app.state.blob_storage = blob_storage
app.state.report_service = ReportService.from_settings(settings, blob_storage)
app.state.testimonial_service = TestimonialService(TestimonialRepository(settings))

allow_origins = [origin.rstrip("/") for origin in settings.cors_allow_origins]
if not allow_origins:
	allow_origins = DEV_ORIGINS if settings.is_dev() else [PRODUCTION_ORIGIN]

# Starlette disallows wildcard '*' with allow_credentials=True. Replace '*' with explicit origins.
if "*" in allow_origins:
	allow_origins = DEV_ORIGINS if settings.is_dev() else [PRODUCTION_ORIGIN]

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

# Static serving for attachments stored on local disk in dev
if settings.is_dev() and isinstance(blob_storage, LocalBlobStorage):
	upload_root = Path(settings.upload_dir).resolve()
	upload_root.mkdir(parents=True, exist_ok=True)
	app.mount("/uploads", StaticFiles(directory=str(upload_root), check_dir=True), name="uploads")

obs_init(app)

# Ensure every request carries an X-Request-Id and make it available on request.state
app.add_middleware(RequestIdMiddleware)

app.include_router(reports.router, prefix=settings.api_prefix)
app.include_router(testimonials.router, prefix=settings.api_prefix)
app.include_router(ops.router, tags=["ops"])
