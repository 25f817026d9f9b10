from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.recon.models import Base, JSONDocument

CHECKLIST_STATUSES = ("in-progress", "completed", "approved", "rejected")


class InspectionChecklist(Base):
    """
    Denormalised copy of a vehicle's inspection data, one row per vehicle.
    Written best-effort after the vehicle row; the vehicle row is authoritative.
    """

    __tablename__ = "inspection_checklists"
    __table_args__ = (
        Index("idx_inspection_checklists_vehicle_id", "vehicle_id", unique=True),
        Index("idx_inspection_checklists_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    vehicle_id: Mapped[str] = mapped_column(ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False)
    inspector_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    checklist_data: Mapped[dict] = mapped_column(JSONDocument, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="in-progress")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
