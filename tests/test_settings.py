from pathlib import Path

import pytest

from settings import load_settings

ENV_VARS = [
    "DATABASE_URL",
    "RECORD_STORE_BACKEND",
    "QR_STORAGE_BACKEND",
    "QR_OUTPUT_DIR",
    "QR_BASE_URL",
    "QR_MAX_ID_ATTEMPTS",
    "QR_MAX_SCAN_CONFLICTS",
    "QR_SCAN_LOG",
    "SUPABASE_BUCKET",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = load_settings()

    assert settings.database_url == "sqlite:///./qr_items.db"
    assert settings.record_store_backend == "sql"
    assert settings.storage_backend == "local"
    assert settings.output_dir == Path("static/generated_qr")
    assert settings.base_url == "http://localhost:8000/api/qr-codes"
    assert settings.max_id_attempts == 5
    assert settings.max_scan_conflicts == 50
    assert settings.scan_log_enabled is False
    assert settings.supabase_bucket == "qr-codes"
    assert settings.log_level == "INFO"


def test_overrides(clean_env):
    clean_env.setenv("QR_STORAGE_BACKEND", "SUPABASE")
    clean_env.setenv("QR_MAX_ID_ATTEMPTS", "9")
    clean_env.setenv("QR_SCAN_LOG", "yes")

    settings = load_settings()

    assert settings.storage_backend == "supabase"
    assert settings.max_id_attempts == 9
    assert settings.scan_log_enabled is True


@pytest.mark.parametrize(
    "name, value",
    [
        ("RECORD_STORE_BACKEND", "mongo"),
        ("QR_STORAGE_BACKEND", "ftp"),
        ("QR_MAX_ID_ATTEMPTS", "0"),
        ("QR_MAX_SCAN_CONFLICTS", "many"),
    ],
)
def test_invalid_values(clean_env, name, value):
    clean_env.setenv(name, value)
    with pytest.raises(ValueError):
        load_settings()
