import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import Base

VISIT_STATUSES = ("scheduled", "en_route", "started", "completed", "cancelled")

# Statuses in which photo evidence may be added, confirmed or removed.
EDITABLE_VISIT_STATUSES = frozenset({"en_route", "started", "completed"})


class Visit(Base):
    """Scheduling-owned visit row. Only read here, and locked on photo confirm."""

    __tablename__ = "visits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")
    assigned_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    photos: Mapped[list["VisitPhoto"]] = relationship(back_populates="visit", cascade="all, delete-orphan")

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_VISIT_STATUSES


from .visit_photo import VisitPhoto  # noqa: E402, F401
