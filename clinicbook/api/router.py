from fastapi import APIRouter
from clinicbook.modules.bookings.router import router as bookings_router
from clinicbook.modules.notifications.router import router as notifications_router
from clinicbook.modules.audit.router import router as audit_router

api_router = APIRouter()
api_router.include_router(bookings_router, tags=["bookings"])
api_router.include_router(notifications_router, tags=["notifications"])
api_router.include_router(audit_router, tags=["audit"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
