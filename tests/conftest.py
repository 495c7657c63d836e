import os
import sys
from dataclasses import replace
from typing import Optional

import pytest
from sqlalchemy.orm import sessionmaker

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# in-memory database for everything imported below (main.py creates tables on import)
os.environ.setdefault("DATABASE_URL", "sqlite://")

from database import Base, build_engine  # noqa: E402
from models import Item, Property  # noqa: E402
from settings import load_settings  # noqa: E402
from utils.content_store import ContentStoreError, LocalContentStore  # noqa: E402
from utils.qr_service import assemble_qr_service  # noqa: E402
from utils.record_store import SQLAlchemyRecordStore  # noqa: E402

OWNER = "user-1"
OTHER_OWNER = "user-2"

# item ids: the first 8 characters end up in the QR identifier
ITEM_1 = "a1b2c3d4-0000-4000-8000-000000000001"
ITEM_2 = "b2c3d4e5-0000-4000-8000-000000000002"
FOREIGN_ITEM = "c3d4e5f6-0000-4000-8000-000000000003"

FIXED_SECONDS = 1760781234.5
FIXED_MS = 1760781234500


class FailingContentStore:
    """Content store whose writes always fail."""

    def __init__(self) -> None:
        self.put_calls = 0

    def put(self, key, data, content_type="application/octet-stream"):
        self.put_calls += 1
        raise ContentStoreError(f"disk full while writing {key}")

    def get(self, key) -> Optional[bytes]:
        return None

    def delete(self, key) -> None:
        raise ContentStoreError(f"{key} not found")

    def probe(self) -> bool:
        return False


def make_settings(tmp_path, **overrides):
    settings = replace(
        load_settings(),
        database_url="sqlite://",
        record_store_backend="sql",
        storage_backend="local",
        output_dir=tmp_path / "qr",
        base_url="http://testserver/api/qr-codes",
        download_path="/api/qr-codes/{identifier}/download",
        max_id_attempts=5,
        max_scan_conflicts=50,
        scan_log_enabled=False,
    )
    return replace(settings, **overrides)


def seed_items(add) -> None:
    """Two properties: user-1 owns ITEM_1 and ITEM_2, user-2 owns FOREIGN_ITEM."""
    add(
        "properties",
        {"id": "prop-1", "user_id": OWNER, "name": "Lake House", "property_type": "residential"},
    )
    add(
        "properties",
        {"id": "prop-2", "user_id": OTHER_OWNER, "name": "City Office", "property_type": "commercial"},
    )
    add(
        "items",
        {
            "id": ITEM_1,
            "property_id": "prop-1",
            "name": "Espresso machine",
            "description": "Descale monthly",
            "location": "Kitchen",
            "media_url": "https://cdn.example.com/espresso.jpg",
            "media_type": "image",
            "created_at": "2026-01-01T10:00:00+00:00",
        },
    )
    add(
        "items",
        {
            "id": ITEM_2,
            "property_id": "prop-1",
            "name": "Boiler",
            "description": None,
            "location": "Basement",
            "media_url": None,
            "media_type": "image",
            "created_at": "2026-01-02T10:00:00+00:00",
        },
    )
    add(
        "items",
        {
            "id": FOREIGN_ITEM,
            "property_id": "prop-2",
            "name": "Projector",
            "description": "Meeting room 2",
            "location": "Floor 3",
            "media_url": None,
            "media_type": "image",
            "created_at": "2026-01-03T10:00:00+00:00",
        },
    )


# ---------------------------------------------------------------------------
# 🗄️ database
# ---------------------------------------------------------------------------
@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def records(engine):
    return SQLAlchemyRecordStore(engine)


@pytest.fixture
def seeded(engine):
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    models = {"properties": Property, "items": Item}

    with session_local() as db:
        def add(table, values):
            values = dict(values)
            if "created_at" in values:
                values.pop("created_at")
            db.add(models[table](**values))
            db.flush()

        seed_items(add)
        db.commit()
    return engine


# ---------------------------------------------------------------------------
# 🧩 service
# ---------------------------------------------------------------------------
@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def content_store(settings):
    return LocalContentStore(settings.output_dir)


@pytest.fixture
def service(seeded, records, content_store, settings):
    return assemble_qr_service(records, content_store, settings=settings)


@pytest.fixture
def fixed_ids(service):
    """Deterministic clock and suffix for identifier assertions."""
    service.identifiers.clock = lambda: FIXED_SECONDS
    service.identifiers.suffix = lambda: "K7Q2ZD"
    return service


@pytest.fixture
def qr_record(service):
    result = service.lifecycle.create(ITEM_1, OWNER)
    assert result.success, result.error
    return result.data
