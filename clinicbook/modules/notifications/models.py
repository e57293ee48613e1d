import uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text
from clinicbook.core.base import Base, TimestampedMixin

class Notification(Base, TimestampedMixin):
    user_id: Mapped[uuid.UUID] = mapped_column(index=True)
    title: Mapped[str] = mapped_column(String(120))
    message: Mapped[str] = mapped_column(Text)
    is_read: Mapped[bool] = mapped_column(default=False)
