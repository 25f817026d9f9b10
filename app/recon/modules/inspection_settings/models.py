from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.recon.models import Base, JSONDocument


class InspectionSettingsRecord(Base):
    """
    Exactly one settings document per dealership (upsert by dealership_id).
    The document shape is owned by the service layer; the table only stores it.
    """

    __tablename__ = "inspection_settings"
    __table_args__ = (
        Index("idx_inspection_settings_dealership_id", "dealership_id", unique=True),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    dealership_id: Mapped[str] = mapped_column(ForeignKey("dealerships.id", ondelete="CASCADE"), nullable=False)
    settings: Mapped[dict] = mapped_column(JSONDocument, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
