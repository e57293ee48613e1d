import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, TIMESTAMP, text, JSON
from clinicbook.core.base import Base, TimestampedMixin

class AuditEvent(Base, TimestampedMixin):
    # who
    actor_user_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)
    actor_role: Mapped[str] = mapped_column(String(16), default="guest")
    # what happened
    action: Mapped[str] = mapped_column(String(300))  # "PATCH /api/v1/book/<id>/cancel"
    method: Mapped[str] = mapped_column(String(8))
    path: Mapped[str] = mapped_column(String(255))
    status_code: Mapped[int] = mapped_column()
    duration_ms: Mapped[int] = mapped_column(default=0)
    level: Mapped[str] = mapped_column(String(8), default="info", index=True)  # info | error
    query: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    body: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(256), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
