import json
import uuid
import logging
from typing import Any, Sequence
from fastapi import Request
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from clinicbook.core.security import principal_from_request
from clinicbook.modules.audit.models import AuditEvent

log = logging.getLogger("audit")

AUDIT_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
SENSITIVE_KEYS = frozenset({
    "password", "new_password", "confirm_password",
    "token", "refresh_token", "jwt", "authorization", "cookie",
})
MAX_TEXT = 500
MAX_ITEMS = 40
MAX_DEPTH = 3

def level_for(status_code: int) -> str:
    return "error" if status_code >= 400 else "info"

def sanitize_audit_payload(value: Any, depth: int = 0) -> Any:
    """Redact secrets and bound the size of anything stored in the audit trail."""
    if value is None:
        return None
    if depth > MAX_DEPTH:
        return "[depth-limited]"
    if isinstance(value, (list, tuple)):
        return [sanitize_audit_payload(v, depth + 1) for v in list(value)[:MAX_ITEMS]]
    if isinstance(value, dict):
        out = {}
        for key, nested in list(value.items())[:MAX_ITEMS]:
            if str(key).lower() in SENSITIVE_KEYS:
                out[key] = "[redacted]"
            else:
                out[key] = sanitize_audit_payload(nested, depth + 1)
        return out
    if isinstance(value, str) and len(value) > MAX_TEXT:
        return f"{value[:MAX_TEXT]}...[truncated]"
    return value

class AuditService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(self,
                  *,
                  method: str,
                  path: str,
                  status_code: int,
                  duration_ms: int,
                  actor_user_id: uuid.UUID | None = None,
                  actor_role: str = "guest",
                  query: dict | None = None,
                  body: Any = None,
                  client_ip: str | None = None,
                  user_agent: str | None = None) -> AuditEvent:
        ev = AuditEvent(
            actor_user_id=actor_user_id,
            actor_role=actor_role,
            action=f"{method} {path}"[:300],
            method=method,
            path=path[:255],
            status_code=status_code,
            duration_ms=duration_ms,
            level=level_for(status_code),
            query=sanitize_audit_payload(query or {}),
            body=sanitize_audit_payload(body),
            client_ip=client_ip,
            user_agent=user_agent[:256] if user_agent else None,
        )
        self.session.add(ev)
        await self.session.commit()
        return ev

    async def list(self,
                   *,
                   limit: int = 100,
                   level: str | None = None,
                   method: str | None = None,
                   status_code: int | None = None,
                   actor_user_id: uuid.UUID | None = None,
                   path_contains: str | None = None) -> Sequence[AuditEvent]:
        cond = []
        if level:
            cond.append(AuditEvent.level == level)
        if method:
            cond.append(AuditEvent.method == method.upper())
        if status_code is not None:
            cond.append(AuditEvent.status_code == status_code)
        if actor_user_id:
            cond.append(AuditEvent.actor_user_id == actor_user_id)
        if path_contains:
            cond.append(AuditEvent.path.ilike(f"%{path_contains}%"))
        q = select(AuditEvent).where(*cond).order_by(desc(AuditEvent.occurred_at), desc(AuditEvent.created_at)).limit(limit)
        res = await self.session.execute(q)
        return res.scalars().all()

async def read_json_body(request: Request) -> Any:
    """Parsed JSON request body, or None when there is none or it is not JSON."""
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None

async def record_request(session_factory: async_sessionmaker, request: Request, status_code: int, duration_ms: int, body: Any = None) -> None:
    """Write one audit row for a mutating request. Failures are logged, never raised."""
    principal = principal_from_request(request)
    try:
        async with session_factory() as session:
            await AuditService(session).log(
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=duration_ms,
                actor_user_id=principal.user_id if principal else None,
                actor_role=principal.role if principal else "guest",
                query=dict(request.query_params),
                body=body,
                client_ip=request.client.host if request.client else None,
                user_agent=request.headers.get("user-agent"),
            )
    except Exception:
        log.exception("Failed to write audit event for %s %s", request.method, request.url.path)
