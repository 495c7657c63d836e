# =============================================================================
# 📦 models/item.py
# Item belonging to a property. QR codes are bound to items.
# =============================================================================

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import String, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from models.property import utc_now

if TYPE_CHECKING:
    from models.property import Property
    from models.qrcode import QRCode


class Item(Base):
    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    property_id: Mapped[str] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    media_url: Mapped[Optional[str]] = mapped_column(String(500))
    media_type: Mapped[str] = mapped_column(String(20), default="image")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=utc_now)

    property: Mapped["Property"] = relationship("Property", back_populates="items")
    qr_codes: Mapped[list["QRCode"]] = relationship(
        "QRCode",
        back_populates="item",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Item(id={self.id}, name='{self.name}', property_id={self.property_id})>"
