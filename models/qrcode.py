# =============================================================================
# 📦 QRCode Model – one scannable code bound to an item (SQLAlchemy 2.0)
# =============================================================================

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from models.property import utc_now

if TYPE_CHECKING:
    from models.item import Item
    from models.qr_scan import QRScan


QR_STATUSES = ("active", "inactive", "expired", "deleted")


class QRCode(Base):
    """
    QR code record.

    The public ``qr_identifier`` is what gets encoded (as a lookup URL) into the
    image; ``image_reference`` is the filename of that image in the content store.
    Scan counters are only touched by scan recording.
    """
    __tablename__ = "qr_codes"
    __table_args__ = (
        CheckConstraint("scan_count >= 0", name="ck_qr_codes_scan_count"),
    )

    # ---------------------------------------------------------------------
    # 🧾 Identity
    # ---------------------------------------------------------------------
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    qr_identifier: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    item_reference: Mapped[str] = mapped_column(
        ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    # ---------------------------------------------------------------------
    # 📈 Scan tracking
    # ---------------------------------------------------------------------
    scan_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_scanned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # ---------------------------------------------------------------------
    # 🖼️ Image artifact
    # ---------------------------------------------------------------------
    image_reference: Mapped[Optional[str]] = mapped_column(String(255))
    download_url: Mapped[Optional[str]] = mapped_column(String(500))

    # ---------------------------------------------------------------------
    # 🕒 Timestamps
    # ---------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=utc_now)

    # ---------------------------------------------------------------------
    # 🔗 Relationships
    # ---------------------------------------------------------------------
    item: Mapped["Item"] = relationship("Item", back_populates="qr_codes")
    scans: Mapped[list["QRScan"]] = relationship(
        "QRScan",
        back_populates="qr",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<QRCode(id={self.id}, qr_identifier='{self.qr_identifier}', "
            f"status='{self.status}', scan_count={self.scan_count})>"
        )
