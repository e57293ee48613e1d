import uuid
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from clinicbook.core.db import get_session
from clinicbook.core.security import require_roles
from clinicbook.modules.audit.service import AuditService

router = APIRouter()

@router.get("/audit", dependencies=[Depends(require_roles("admin"))])
async def list_audit(
    session: AsyncSession = Depends(get_session),
    limit: int = Query(100, ge=1, le=500),
    level: str | None = Query(None, pattern="^(info|error)$"),
    method: str | None = None,
    status_code: int | None = Query(None, ge=100, le=599),
    actor_user_id: uuid.UUID | None = None,
    path_contains: str | None = None,
):
    rows = await AuditService(session).list(
        limit=limit, level=level, method=method, status_code=status_code,
        actor_user_id=actor_user_id, path_contains=path_contains,
    )
    # Return raw dicts for simplicity
    events = [
        {
            "id": str(row.id),
            "actor_user_id": str(row.actor_user_id) if row.actor_user_id else None,
            "actor_role": row.actor_role,
            "action": row.action,
            "method": row.method,
            "path": row.path,
            "status_code": row.status_code,
            "level": row.level,
            "duration_ms": row.duration_ms,
            "query": row.query,
            "body": row.body,
            "occurred_at": row.occurred_at.isoformat() if row.occurred_at else None,
        }
        for row in rows
    ]
    return {"status": "success", "results": len(events), "events": events}
