from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.recon.models import Base, JSONDocument, new_uuid


class Vehicle(Base):
    __tablename__ = "vehicles"
    __table_args__ = (
        Index("idx_vehicles_dealership_id", "dealership_id"),
        Index("idx_vehicles_vin", "vin", unique=True),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    dealership_id: Mapped[str] = mapped_column(ForeignKey("dealerships.id", ondelete="CASCADE"), nullable=False)

    vin: Mapped[str] = mapped_column(String(32), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    make: Mapped[str] = mapped_column(String(128), nullable=False)
    model: Mapped[str] = mapped_column(String(128), nullable=False)
    trim: Mapped[str | None] = mapped_column(String(128), nullable=True)
    color: Mapped[str] = mapped_column(String(64), nullable=False)
    mileage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    date_acquired: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    location_name: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # section key -> [{id, label, rating, updatedBy, updatedAt}], plus customSections/sectionNotes
    inspection_data: Mapped[dict] = mapped_column(JSONDocument, nullable=False, default=dict)
    # newest first: [{id, text, userInitials, timestamp, category}]
    team_notes: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)

    is_sold: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_pending: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
