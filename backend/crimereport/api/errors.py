"""Global error handlers ensuring every error body carries a code, a message and the request id."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from crimereport.api.request_id import get_request_id
from crimereport.domain.exceptions import DomainError
from crimereport.settings import Settings, settings

LOGGER = logging.getLogger(__name__)

_MESSAGES = {
    "authentication_required": "Authentication is required",
    "invalid_token": "The access token is invalid or expired",
    "insufficient_role": "Officer role required",
    "forbidden": "Not authorized to perform this action",
    "admin_token_not_configured": "Admin access is not configured",
    "Not Found": "Resource not found",
    "Method Not Allowed": "Method not allowed",
}


def _field_name(loc: Any) -> str:
    parts = [str(part) for part in (loc or ()) if part not in ("body", "query", "path", "header")]
    return ".".join(parts) or "request"


def _validation_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    return [{"field": _field_name(err.get("loc")), "message": str(err.get("msg", ""))} for err in exc.errors()]


def install_error_handlers(app: FastAPI, config: Settings | None = None) -> None:
    config = config or settings

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        rid = get_request_id(request)
        detail = exc.detail if isinstance(exc.detail, str) else "http_error"
        payload = {"detail": detail, "message": _MESSAGES.get(detail, detail), "request_id": rid}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {
            "detail": "validation_error",
            "message": "One or more fields are invalid",
            "errors": _validation_errors(exc),
            "request_id": rid,
        }
        return JSONResponse(status_code=400, content=payload)

    @app.exception_handler(DomainError)
    async def domain_exc_handler(request: Request, exc: DomainError):  # type: ignore[override]
        payload = exc.to_payload()
        payload["request_id"] = get_request_id(request)
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):  # type: ignore[override]
        rid = get_request_id(request)
        LOGGER.error("unhandled_exception", exc_info=exc, extra={"path": request.url.path})
        payload: Dict[str, Any] = {
            "detail": "internal_error",
            "message": "Something went wrong",
            "request_id": rid,
        }
        if config.is_dev():
            payload["debug"] = f"{type(exc).__name__}: {exc}"
        return JSONResponse(status_code=500, content=payload)
