"""
utils/qr_config.py
────────────────────────────────────────────
Render settings for item QR codes.

Defines the default render options (size, margin, error correction,
colours, output format) and a few named presets that can be requested
when generating or regenerating an image.
────────────────────────────────────────────
"""

from typing import Dict, Any, Optional

# ─────────────────────────────────────────────
# 🎨 DEFAULT RENDER OPTIONS
# ─────────────────────────────────────────────
QR_DEFAULT_RENDER_OPTIONS: Dict[str, Any] = {
    "size": 256,
    "margin": 1,
    "error_correction": "M",
    "dark": "#000000",
    "light": "#FFFFFF",
    "image_format": "png",
}

ERROR_CORRECTION_LEVELS = ("L", "M", "Q", "H")

IMAGE_FORMATS: Dict[str, str] = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "svg": "image/svg+xml",
}

MIN_SIZE = 64
MAX_SIZE = 2048

# ─────────────────────────────────────────────
# 🪄 PRESETS
# ─────────────────────────────────────────────
QR_PRESETS: Dict[str, Dict[str, Any]] = {
    "default": {},
    # printed labels: bigger, survives scratches
    "label": {
        "size": 512,
        "margin": 2,
        "error_correction": "H",
    },
    "high_contrast": {
        "dark": "#000000",
        "light": "#FFFFFF",
        "error_correction": "Q",
    },
    "compact": {
        "size": 128,
        "margin": 1,
        "error_correction": "L",
    },
    "vector": {
        "image_format": "svg",
    },
}


# ─────────────────────────────────────────────
# 🧠 Resolve options
# ─────────────────────────────────────────────
def get_render_preset(preset_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Returns the default options merged with a preset.
    Unknown preset names fall back to the defaults.
    """
    preset = QR_PRESETS.get(preset_name or "default", {})
    return {**QR_DEFAULT_RENDER_OPTIONS, **preset}
