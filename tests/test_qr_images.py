from __future__ import annotations

import logging

import pytest

from conftest import ITEM_1, OWNER
from utils.qr_images import QRImageManager, QRRenderOptions
from utils.qr_result import QRErrorKind
from utils.record_store import find_one


# ---------------------------------------------------------------------------
# render options
# ---------------------------------------------------------------------------
def test_render_options_defaults():
    opts = QRRenderOptions.resolve(None)
    assert opts == QRRenderOptions(size=256, margin=1, error_correction="M", image_format="png")


def test_render_options_preset_then_overrides():
    opts = QRRenderOptions.resolve({"preset": "label", "margin": 4})
    assert opts.size == 512
    assert opts.error_correction == "H"
    assert opts.margin == 4


@pytest.mark.parametrize(
    "options",
    [
        {"size": 10},
        {"size": "big"},
        {"margin": 40},
        {"error_correction": "Z"},
        {"image_format": "bmp"},
        {"colour": "red"},
    ],
)
def test_render_options_rejected(options):
    with pytest.raises(ValueError):
        QRRenderOptions.resolve(options)


# ---------------------------------------------------------------------------
# render_and_store
# ---------------------------------------------------------------------------
def test_render_and_store_writes_file(service, content_store):
    result = service.images.render_and_store("QR-TEST-1-AAAAAA")

    assert result.success
    artifact = result.data
    assert artifact.filename == "QR-TEST-1-AAAAAA.png"
    assert artifact.lookup_url == "http://testserver/api/qr-codes/QR-TEST-1-AAAAAA"
    assert artifact.download_url == "/api/qr-codes/QR-TEST-1-AAAAAA/download"
    assert artifact.byte_size == len(artifact.content) > 0
    assert artifact.inline_preview.startswith("data:image/png;base64,")
    assert content_store.get(artifact.filename) == artifact.content


def test_render_and_store_bad_options(service):
    result = service.images.render_and_store("QR-TEST-1-AAAAAA", {"size": 5000})
    assert not result.success
    assert result.kind is QRErrorKind.VALIDATION


def test_renderer_failure_is_generation_error(records, content_store):
    def broken_renderer(payload, **options):
        raise RuntimeError("encoder crashed")

    manager = QRImageManager(content_store, records, base_url="http://testserver", renderer=broken_renderer)
    result = manager.render_and_store("QR-TEST-1-AAAAAA")

    assert not result.success
    assert result.kind is QRErrorKind.GENERATION_ERROR
    assert result.message == "Failed to generate QR code image"
    assert content_store.get("QR-TEST-1-AAAAAA.png") is None


# ---------------------------------------------------------------------------
# repair on read
# ---------------------------------------------------------------------------
def test_fetch_returns_stored_image(service, qr_record):
    result = service.images.fetch_or_regenerate(qr_record["qr_identifier"])

    assert result.success
    assert result.data["regenerated"] is False
    assert result.data["content_type"] == "image/png"
    assert result.data["byte_size"] == qr_record["byte_size"]


def test_fetch_regenerates_missing_file(service, content_store, qr_record, caplog):
    content_store.delete(qr_record["filename"])
    assert content_store.get(qr_record["filename"]) is None

    with caplog.at_level(logging.WARNING, logger="utils.qr_images"):
        result = service.images.fetch_or_regenerate(qr_record["qr_identifier"])

    assert result.success
    assert result.data["regenerated"] is True
    assert result.data["content"].startswith(b"\x89PNG")
    assert content_store.get(qr_record["filename"]) == result.data["content"]
    assert "regenerating" in caplog.text


def test_fetch_regenerates_in_original_format(service, content_store):
    created = service.lifecycle.create(ITEM_1, OWNER, {"image_format": "svg"})
    assert created.data["filename"].endswith(".svg")
    content_store.delete(created.data["filename"])

    result = service.images.fetch_or_regenerate(created.data["qr_identifier"])

    assert result.data["regenerated"] is True
    assert result.data["filename"] == created.data["filename"]
    assert result.data["content_type"] == "image/svg+xml"


def test_fetch_unknown_identifier(service):
    result = service.images.fetch_or_regenerate("QR-NOPE-1-AAAAAA")
    assert not result.success
    assert result.kind is QRErrorKind.NOT_FOUND


# ---------------------------------------------------------------------------
# regenerate + delete
# ---------------------------------------------------------------------------
def test_regenerate_switches_format_and_removes_old_file(service, records, content_store, qr_record):
    result = service.images.regenerate(qr_record["qr_identifier"], {"image_format": "jpeg"})

    assert result.success
    assert result.data["filename"] == f"{qr_record['qr_identifier']}.jpeg"
    assert content_store.get(qr_record["filename"]) is None
    stored = find_one(records, "qr_codes", {"id": qr_record["id"]})
    assert stored["image_reference"] == result.data["filename"]


def test_delete_is_best_effort(service, caplog):
    with caplog.at_level(logging.WARNING, logger="utils.qr_images"):
        assert service.images.delete("QR-NOPE-1-AAAAAA.png") is False
    assert service.images.delete(None) is False
    assert "Could not delete" in caplog.text
