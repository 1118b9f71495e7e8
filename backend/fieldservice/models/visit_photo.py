import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey, Index, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import Base

PHOTO_PENDING = "pending"
PHOTO_READY = "ready"


class VisitPhoto(Base):
    __tablename__ = "visit_photos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    visit_id: Mapped[str] = mapped_column(ForeignKey("visits.id", ondelete="CASCADE"), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default=PHOTO_PENDING)
    # Only timestamp: the row changes once (pending -> ready) and is hard-deleted.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )

    visit: Mapped["Visit"] = relationship(back_populates="photos")

    __table_args__ = (
        Index("ix_visit_photos_tenant_visit_status", "tenant_id", "visit_id", "status"),
        CheckConstraint("status IN ('pending', 'ready')", name="ck_visit_photos_status"),
    )


from .visit import Visit  # noqa: E402, F401
