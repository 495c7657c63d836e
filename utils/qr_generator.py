# =============================================================================
# 🧠 QR image renderer
# -----------------------------------------------------------------------------
# Turns a payload (the lookup URL) into image bytes: PNG/JPEG/WEBP via Pillow,
# SVG via qrcode's path image factory.
# =============================================================================

from __future__ import annotations

import logging
from io import BytesIO

import qrcode
import qrcode.image.svg
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q
from PIL import Image

from utils.qr_config import IMAGE_FORMATS

logger = logging.getLogger(__name__)

_ERROR_CORRECTION = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}

_PIL_FORMATS = {"png": "PNG", "jpeg": "JPEG", "webp": "WEBP"}


def render_qr_bytes(
    payload: str,
    size: int = 256,
    margin: int = 1,
    error_correction: str = "M",
    dark: str = "#000000",
    light: str = "#FFFFFF",
    image_format: str = "png",
) -> bytes:
    """
    Renders ``payload`` as a QR image and returns the encoded bytes.
    Raster formats are scaled to ``size`` x ``size`` pixels.
    """
    image_format = image_format.lower()
    if image_format not in IMAGE_FORMATS:
        raise ValueError(f"Unsupported image format: {image_format}")
    level = _ERROR_CORRECTION.get(error_correction.upper())
    if level is None:
        raise ValueError(f"Unsupported error correction level: {error_correction}")

    # === 1️⃣ QR matrix ===
    qr = qrcode.QRCode(
        version=None,
        error_correction=level,
        box_size=10,
        border=margin,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    # === 2️⃣ SVG ===
    if image_format == "svg":
        svg = qr.make_image(image_factory=qrcode.image.svg.SvgPathImage)
        buffer = BytesIO()
        svg.save(buffer)
        return buffer.getvalue()

    # === 3️⃣ Raster ===
    img = qr.make_image(fill_color=dark, back_color=light).convert("RGB")
    img = img.resize((size, size), Image.Resampling.NEAREST)

    buffer = BytesIO()
    img.save(buffer, format=_PIL_FORMATS[image_format])
    data = buffer.getvalue()
    if not data:
        raise ValueError("QR renderer produced no bytes")

    logger.debug(f"🖼️ Rendered {image_format} QR ({len(data)} bytes) for {payload}")
    return data
