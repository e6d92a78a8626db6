"""API middleware: correlation ID, company context, request audit."""

import logging
import re
import time
import traceback
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.audit.models import AuditAction, AuditStatus
from app.core.context import company_id_ctx, correlation_id_ctx

logger = logging.getLogger(__name__)

COMPANY_HEADER = "X-Company-ID"
CORRELATION_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"
USER_ID_HEADER = "X-User-ID"
USER_EMAIL_HEADER = "X-User-Email"

_METHOD_ACTIONS = {
    "GET": AuditAction.READ,
    "POST": AuditAction.CREATE,
    "PUT": AuditAction.UPDATE,
    "PATCH": AuditAction.UPDATE,
    "DELETE": AuditAction.DELETE,
}
_RESOURCE_PATTERN = re.compile(r"/api/v\d+/([a-z-]+)", re.IGNORECASE)


def action_for_method(method: str) -> AuditAction:
    """Map HTTP verb to audit action; unknown verbs count as reads."""
    return _METHOD_ACTIONS.get(method.upper(), AuditAction.READ)


def resource_from_path(path: str) -> str:
    """First segment after /api/v<N>/, e.g. /api/v1/invoices/12 -> invoices."""
    match = _RESOURCE_PATTERN.search(path)
    return match.group(1) if match else "unknown"


def is_excluded_path(path: str, prefixes: Iterable[str]) -> bool:
    return any(path.startswith(prefix) for prefix in prefixes)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Preserve X-Correlation-ID (or X-Request-ID) or generate one; attach to request.state, response header, and logging context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = (
            request.headers.get(CORRELATION_HEADER)
            or request.headers.get(REQUEST_ID_HEADER)
            or str(uuid.uuid4())
        )
        request.state.correlation_id = correlation_id
        correlation_id_ctx.set(correlation_id)

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class CompanyContextMiddleware(BaseHTTPMiddleware):
    """Extract X-Company-ID; return 400 if missing; attach to request.state and request-scoped context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        company_id = request.headers.get(COMPANY_HEADER)
        if not company_id or not company_id.strip():
            return JSONResponse(
                status_code=400,
                content={"detail": "X-Company-ID header is required"},
            )
        request.state.company_id = company_id.strip()
        company_id_ctx.set(request.state.company_id)
        return await call_next(request)


class AuditLogMiddleware(BaseHTTPMiddleware):
    """
    Record one audit entry per request via app.state.audit_log_service.
    Skips excluded path prefixes and status codes. Handler exceptions are
    audited as failures and re-raised; auditing never changes the response.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        settings = request.app.state.settings
        if not settings.audit_log_enabled or is_excluded_path(
            request.url.path, settings.audit_log_exclude_paths
        ):
            return await call_next(request)

        started = time.perf_counter()
        requested_at = datetime.now(timezone.utc)
        try:
            response = await call_next(request)
        except Exception as exc:
            await self._audit(
                request,
                status_code=getattr(exc, "status_code", 500),
                started=started,
                requested_at=requested_at,
                error=exc,
            )
            raise
        await self._audit(
            request,
            status_code=response.status_code,
            started=started,
            requested_at=requested_at,
        )
        return response

    async def _audit(
        self,
        request: Request,
        *,
        status_code: int,
        started: float,
        requested_at: datetime,
        error: Optional[Exception] = None,
    ) -> None:
        settings = request.app.state.settings
        if status_code in settings.audit_log_exclude_status_codes:
            return
        duration = int((time.perf_counter() - started) * 1000)
        failed = error is not None or status_code >= 400
        stack_trace = None
        if error is not None and settings.environment == "dev":
            stack_trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))

        entry = {
            "timestamp": requested_at,
            "correlation_id": getattr(request.state, "correlation_id", None) or str(uuid.uuid4()),
            "company_id": getattr(request.state, "company_id", None),
            "user_id": request.headers.get(USER_ID_HEADER),
            "user_email": request.headers.get(USER_EMAIL_HEADER),
            "ip_address": request.client.host if request.client else None,
            "user_agent": request.headers.get("user-agent"),
            "action": action_for_method(request.method),
            "resource": resource_from_path(request.url.path),
            "method": request.method,
            "path": request.url.path,
            "status": AuditStatus.FAILURE if failed else AuditStatus.SUCCESS,
            "status_code": status_code,
            "duration": duration,
            "error_message": str(error) if error is not None else None,
            "stack_trace": stack_trace,
        }
        await request.app.state.audit_log_service.log(entry)
