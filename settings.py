# =============================================================================
# ⚙️ settings.py
# -----------------------------------------------------------------------------
# Runtime configuration for the property item QR service.
# Values come from the environment (.env is loaded via python-dotenv).
# =============================================================================

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    database_url: str
    record_store_backend: str
    storage_backend: str
    output_dir: Path
    base_url: str
    download_path: str
    max_id_attempts: int
    max_scan_conflicts: int
    scan_log_enabled: bool
    supabase_url: Optional[str]
    supabase_key: Optional[str]
    supabase_bucket: str
    log_level: str


def load_settings() -> Settings:
    """Reads the current environment into a Settings object."""
    settings = Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./qr_items.db"),
        record_store_backend=os.getenv("RECORD_STORE_BACKEND", "sql").lower(),
        storage_backend=os.getenv("QR_STORAGE_BACKEND", "local").lower(),
        output_dir=Path(os.getenv("QR_OUTPUT_DIR", "static/generated_qr")),
        base_url=os.getenv("QR_BASE_URL", "http://localhost:8000/api/qr-codes"),
        download_path=os.getenv("QR_DOWNLOAD_PATH", "/api/qr-codes/{identifier}/download"),
        max_id_attempts=_env_int("QR_MAX_ID_ATTEMPTS", 5),
        max_scan_conflicts=_env_int("QR_MAX_SCAN_CONFLICTS", 50),
        scan_log_enabled=_env_flag("QR_SCAN_LOG"),
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_key=os.getenv("SUPABASE_KEY"),
        supabase_bucket=os.getenv("SUPABASE_BUCKET", "qr-codes"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

    if settings.record_store_backend not in {"sql", "supabase"}:
        raise ValueError(f"Unknown RECORD_STORE_BACKEND: {settings.record_store_backend}")
    if settings.storage_backend not in {"local", "supabase"}:
        raise ValueError(f"Unknown QR_STORAGE_BACKEND: {settings.storage_backend}")
    if settings.max_id_attempts < 1:
        raise ValueError("QR_MAX_ID_ATTEMPTS must be at least 1")
    return settings
