"""
utils/qr_service.py
────────────────────────────────────────────
Wires the QR components together.

    records ──┬── item directory ─┐
              ├── identifiers ────┼── QRLifecycle
    content ──┴── images ─────────┘   QRScanRecorder

build_qr_service() picks the backends from Settings:
- RECORD_STORE_BACKEND=sql      → SQLAlchemy engine (DATABASE_URL)
- RECORD_STORE_BACKEND=supabase → supabase client (SUPABASE_URL / SUPABASE_KEY)
- QR_STORAGE_BACKEND=local      → files under QR_OUTPUT_DIR
- QR_STORAGE_BACKEND=supabase   → storage bucket SUPABASE_BUCKET
────────────────────────────────────────────
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from settings import Settings, load_settings
from utils.content_store import ContentStore, LocalContentStore, SupabaseContentStore
from utils.item_access import ItemDirectory, RecordStoreItemDirectory
from utils.qr_generator import render_qr_bytes
from utils.qr_ids import QRIdentifierGenerator
from utils.qr_images import QRImageManager
from utils.qr_lifecycle import QRLifecycle
from utils.qr_scans import QRScanRecorder
from utils.record_store import RecordStore, SQLAlchemyRecordStore, SupabaseRecordStore

logger = logging.getLogger(__name__)

QR_TABLE = "qr_codes"
SCAN_LOG_TABLE = "qr_scans"
HEALTH_PAYLOAD = "health-check"


@dataclass
class QRService:
    records: RecordStore
    content: ContentStore
    items: ItemDirectory
    identifiers: QRIdentifierGenerator
    images: QRImageManager
    lifecycle: QRLifecycle
    scans: QRScanRecorder

    def health_check(self) -> Dict[str, Any]:
        """Probes storage, database and the renderer; never raises."""
        checks = {"storage": False, "database": False, "generation": False}

        try:
            checks["storage"] = bool(self.content.probe())
        except Exception as exc:
            logger.error(f"❌ Health check – storage: {exc}")

        try:
            self.records.count(QR_TABLE)
            checks["database"] = True
        except Exception as exc:
            logger.error(f"❌ Health check – database: {exc}")

        try:
            checks["generation"] = len(self.images.renderer(HEALTH_PAYLOAD, size=64)) > 0
        except Exception as exc:
            logger.error(f"❌ Health check – generation: {exc}")

        return {"healthy": all(checks.values()), "checks": checks}


def create_supabase_client(settings: Settings):
    from supabase import create_client

    if not settings.supabase_url or not settings.supabase_key:
        raise ValueError("Supabase URL or Key not found in environment variables.")
    return create_client(settings.supabase_url, settings.supabase_key)


def assemble_qr_service(
    records: RecordStore,
    content: ContentStore,
    settings: Optional[Settings] = None,
    items: Optional[ItemDirectory] = None,
    renderer=render_qr_bytes,
) -> QRService:
    """Builds the component graph around already constructed stores."""
    settings = settings or load_settings()
    items = items or RecordStoreItemDirectory(records)
    identifiers = QRIdentifierGenerator(records, table=QR_TABLE)
    images = QRImageManager(
        content,
        records,
        base_url=settings.base_url,
        download_path=settings.download_path,
        table=QR_TABLE,
        renderer=renderer,
    )
    lifecycle = QRLifecycle(
        records,
        items,
        images,
        identifiers,
        table=QR_TABLE,
        max_attempts=settings.max_id_attempts,
    )
    scans = QRScanRecorder(
        records,
        items,
        table=QR_TABLE,
        scan_log_table=SCAN_LOG_TABLE if settings.scan_log_enabled else None,
        max_conflicts=settings.max_scan_conflicts,
    )
    return QRService(
        records=records,
        content=content,
        items=items,
        identifiers=identifiers,
        images=images,
        lifecycle=lifecycle,
        scans=scans,
    )


def build_qr_service(settings: Optional[Settings] = None, engine=None) -> QRService:
    settings = settings or load_settings()

    client = None
    if "supabase" in (settings.record_store_backend, settings.storage_backend):
        client = create_supabase_client(settings)
        logger.info("☁️ Supabase client initialized")

    if settings.record_store_backend == "supabase":
        records: RecordStore = SupabaseRecordStore(client)
    else:
        if engine is None:
            import database

            if settings.database_url == database.SQLALCHEMY_DATABASE_URL:
                engine = database.engine
            else:
                engine = database.build_engine(settings.database_url)
        records = SQLAlchemyRecordStore(engine)

    if settings.storage_backend == "supabase":
        content: ContentStore = SupabaseContentStore(client, settings.supabase_bucket)
    else:
        content = LocalContentStore(settings.output_dir)

    logger.info(
        f"✅ QR service ready (records={settings.record_store_backend}, storage={settings.storage_backend})"
    )
    return assemble_qr_service(records, content, settings=settings)
