# =============================================================================
# 📦 models/__init__.py
# -----------------------------------------------------------------------------
# Registers every table on Base.metadata (record store + Alembic need them)
# =============================================================================

from .property import Property
from .item import Item
from .qrcode import QRCode
from .qr_scan import QRScan

__all__ = [
    "Property",
    "Item",
    "QRCode",
    "QRScan",
]
