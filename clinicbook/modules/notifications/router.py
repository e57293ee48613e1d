import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from clinicbook.core.db import get_session
from clinicbook.core.security import get_principal, Principal
from clinicbook.modules.notifications.schemas import NotificationOut
from clinicbook.modules.notifications.service import NotificationsService

router = APIRouter()
def svc(s: AsyncSession = Depends(get_session)) -> NotificationsService: return NotificationsService(s)

@router.get("/notifications")
async def my_notifications(principal: Principal = Depends(get_principal), service: NotificationsService = Depends(svc)):
    rows = await service.list_for_user(principal.user_id)
    return {
        "status": "success",
        "results": len(rows),
        "notifications": [NotificationOut.model_validate(r).model_dump(mode="json") for r in rows],
    }

@router.patch("/notifications/{notification_id}/read")
async def mark_read(notification_id: uuid.UUID, principal: Principal = Depends(get_principal), service: NotificationsService = Depends(svc)):
    await service.mark_read(notification_id, principal.user_id)
    return {"status": "success", "message": "Notification marked as read"}
