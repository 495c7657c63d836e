# =============================================================================
# 📊 models/qr_scan.py
# -----------------------------------------------------------------------------
# Optional append-only scan log. One row per successful scan (IP, agent, notes).
# The counters on qr_codes never depend on this table.
# =============================================================================

import uuid

from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from database import Base
from models.property import utc_now


class QRScan(Base):
    __tablename__ = "qr_scans"

    # ---------------------------------------------------------------------
    # 🔹 Keys
    # ---------------------------------------------------------------------
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    qr_code_id = Column(String(36), ForeignKey("qr_codes.id", ondelete="CASCADE"), nullable=False, index=True)
    qr_identifier = Column(String(255), nullable=False, index=True)

    # ---------------------------------------------------------------------
    # 🔹 Scan metadata
    # ---------------------------------------------------------------------
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    scanned_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    qr = relationship("QRCode", back_populates="scans")

    def __repr__(self):
        return f"<QRScan(id={self.id}, qr_identifier='{self.qr_identifier}', scanned_at={self.scanned_at})>"
