from __future__ import annotations

import logging

import pytest

from conftest import (
    FIXED_MS,
    FIXED_SECONDS,
    FOREIGN_ITEM,
    ITEM_1,
    ITEM_2,
    OTHER_OWNER,
    OWNER,
    FailingContentStore,
)
from utils.qr_ids import is_qr_identifier
from utils.qr_result import QRErrorKind
from utils.qr_service import assemble_qr_service
from utils.record_store import RecordStoreError, SQLAlchemyRecordStore, find_one


# =============================================================================
# ➕ create
# =============================================================================
def test_create_active_record_with_image(service, content_store):
    result = service.lifecycle.create(ITEM_1, OWNER)

    assert result.success, result.error
    data = result.data
    assert data["status"] == "active"
    assert data["scan_count"] == 0
    assert data["last_scanned_at"] is None
    assert is_qr_identifier(data["qr_identifier"])
    assert data["qr_identifier"].startswith("QR-A1B2C3D4-")
    assert data["image_reference"] == f"{data['qr_identifier']}.png"
    assert data["download_url"] == f"/api/qr-codes/{data['qr_identifier']}/download"
    assert data["inline_preview"].startswith("data:image/png;base64,")
    assert data["item"]["name"] == "Espresso machine"
    assert data["property"]["name"] == "Lake House"
    assert content_store.get(data["image_reference"]) is not None


def test_second_active_code_is_refused_with_existing_record(service, qr_record):
    result = service.lifecycle.create(ITEM_1, OWNER)

    assert not result.success
    assert result.kind is QRErrorKind.CONSTRAINT
    assert result.error.code == "QR_CODE_EXISTS"
    assert result.data["qr_identifier"] == qr_record["qr_identifier"]
    assert result.error.context["existing_qr_identifier"] == qr_record["qr_identifier"]


def test_allow_multiple_keeps_both_active(service, records, qr_record):
    result = service.lifecycle.create(ITEM_1, OWNER, {"allow_multiple": True})

    assert result.success
    assert result.data["qr_identifier"] != qr_record["qr_identifier"]
    assert records.count("qr_codes", {"item_reference": ITEM_1, "status": "active"}) == 2


def test_inactive_code_does_not_block_a_new_one(service, qr_record):
    service.lifecycle.update(qr_record["id"], {"status": "inactive"}, OWNER)
    assert service.lifecycle.create(ITEM_1, OWNER).success


def test_create_with_custom_identifier_and_status(service):
    result = service.lifecycle.create(
        ITEM_2, OWNER, {"custom_identifier": "BOILER-MAIN", "status": "inactive", "preset": "label"}
    )

    assert result.success
    assert result.data["qr_identifier"] == "BOILER-MAIN"
    assert result.data["status"] == "inactive"


def test_custom_identifier_must_be_unique(service, qr_record):
    result = service.lifecycle.create(
        ITEM_2, OWNER, {"custom_identifier": qr_record["qr_identifier"]}
    )
    assert result.kind is QRErrorKind.CONSTRAINT
    assert result.error.code == "QR_ID_NOT_UNIQUE"


@pytest.mark.parametrize("custom_identifier", ["SHELF#2", "a/b", "shelf 2", "shelf?2"])
def test_custom_identifier_must_be_url_safe(service, records, content_store, custom_identifier):
    result = service.lifecycle.create(ITEM_2, OWNER, {"custom_identifier": custom_identifier})

    assert result.kind is QRErrorKind.VALIDATION
    assert result.error.code == "INVALID_QR_ID"
    assert records.count("qr_codes") == 0
    assert content_store.get(f"{custom_identifier}.png") is None


@pytest.mark.parametrize(
    "item_reference, requester, options",
    [
        ("", OWNER, None),
        (None, OWNER, None),
        (ITEM_1, "", None),
        (ITEM_1, OWNER, {"status": "archived"}),
        (ITEM_1, OWNER, {"size": 1}),
        (ITEM_1, OWNER, {"custom_identifier": "   "}),
    ],
)
def test_create_validation(service, records, item_reference, requester, options):
    result = service.lifecycle.create(item_reference, requester, options)

    assert result.kind is QRErrorKind.VALIDATION
    assert records.count("qr_codes") == 0


def test_create_on_foreign_item_is_authorization(service, records):
    result = service.lifecycle.create(FOREIGN_ITEM, OWNER)

    assert result.kind is QRErrorKind.AUTHORIZATION
    assert result.message == "Item not found or access denied"
    assert records.count("qr_codes") == 0


def test_create_on_missing_item_looks_like_foreign_item(service):
    missing = service.lifecycle.create("ffffffff-dead-beef-0000-000000000000", OWNER)
    foreign = service.lifecycle.create(FOREIGN_ITEM, OWNER)
    assert (missing.kind, missing.message) == (foreign.kind, foreign.message)


def test_identifier_retries_exhausted(fixed_ids):
    service = fixed_ids
    first = service.lifecycle.create(ITEM_1, OWNER)
    assert first.data["qr_identifier"] == f"QR-A1B2C3D4-{FIXED_MS}-K7Q2ZD"

    second = service.lifecycle.create(ITEM_1, OWNER, {"allow_multiple": True})

    assert second.kind is QRErrorKind.GENERATION_ERROR
    assert second.error.code == "UNIQUE_ID_GENERATION_FAILED"
    assert second.error.context["attempts"] == 5


def test_identifier_collision_is_retried(fixed_ids):
    service = fixed_ids
    service.lifecycle.create(ITEM_1, OWNER)
    suffixes = iter(["K7Q2ZD", "K7Q2ZD", "NEW123"])
    service.identifiers.suffix = lambda: next(suffixes)

    result = service.lifecycle.create(ITEM_1, OWNER, {"allow_multiple": True})

    assert result.success
    assert result.data["qr_identifier"] == f"QR-A1B2C3D4-{FIXED_MS}-NEW123"


# =============================================================================
# ↩️ rollback
# =============================================================================
def test_image_failure_rolls_back_record(seeded, records, settings):
    failing = FailingContentStore()
    service = assemble_qr_service(records, failing, settings=settings)
    service.identifiers.clock = lambda: FIXED_SECONDS
    service.identifiers.suffix = lambda: "ROLLBK"

    result = service.lifecycle.create(ITEM_2, OWNER)

    assert not result.success
    assert result.kind is QRErrorKind.GENERATION_ERROR
    assert failing.put_calls == 1
    would_be = f"QR-B2C3D4E5-{FIXED_MS}-ROLLBK"
    assert service.identifiers.ensure_unique(would_be)
    assert records.count("qr_codes", {"item_reference": ITEM_2}) == 0


class UndeletableRecordStore(SQLAlchemyRecordStore):
    def delete(self, table, filters):
        raise RecordStoreError("connection reset")


def test_failed_rollback_is_logged_and_original_error_kept(seeded, settings, caplog):
    records = UndeletableRecordStore(seeded)
    service = assemble_qr_service(records, FailingContentStore(), settings=settings)

    with caplog.at_level(logging.ERROR, logger="utils.qr_lifecycle"):
        result = service.lifecycle.create(ITEM_2, OWNER)

    assert result.kind is QRErrorKind.GENERATION_ERROR
    assert "Rollback failed" in caplog.text
    assert "orphan QR record" in caplog.text


class BrokenSelectStore(SQLAlchemyRecordStore):
    def select(self, *args, **kwargs):
        raise RuntimeError("password=hunter2 leaked in driver error")


def test_unexpected_errors_become_generic_server_errors(seeded, content_store, settings):
    service = assemble_qr_service(BrokenSelectStore(seeded), content_store, settings=settings)

    result = service.lifecycle.create(ITEM_1, OWNER)

    assert result.kind is QRErrorKind.SERVER_ERROR
    assert result.message == "QR code creation failed due to an internal error"
    assert "hunter2" not in result.message


class StaleCheckRecordStore(SQLAlchemyRecordStore):
    """Misses existing active codes in the pre-insert check, as a concurrent create would."""

    def select(self, table, filters=None, order_by=None, descending=False, limit=None):
        if table == "qr_codes" and filters and filters.get("status") == "active" and limit == 1:
            return []
        return super().select(table, filters, order_by=order_by, descending=descending, limit=limit)


def test_concurrent_duplicate_active_code_is_undone(seeded, records, content_store, settings, qr_record):
    racing = assemble_qr_service(StaleCheckRecordStore(seeded), content_store, settings=settings)

    result = racing.lifecycle.create(ITEM_1, OWNER)

    assert result.kind is QRErrorKind.CONSTRAINT
    assert result.error.code == "QR_CODE_EXISTS"
    active = records.select("qr_codes", filters={"item_reference": ITEM_1, "status": "active"})
    assert [row["id"] for row in active] == [qr_record["id"]]


# =============================================================================
# ✏️ update
# =============================================================================
def test_update_status(service, qr_record):
    result = service.lifecycle.update(qr_record["id"], {"status": "expired"}, OWNER)

    assert result.success
    assert result.data["status"] == "expired"
    assert result.data["updated_at"] >= qr_record["updated_at"]


def test_update_ignores_immutable_fields(service, qr_record):
    result = service.lifecycle.update(qr_record["id"], {"scan_count": 99, "item_reference": ITEM_2}, OWNER)

    assert result.kind is QRErrorKind.VALIDATION
    assert result.message == "No valid fields to update"


def test_update_rejects_unknown_status(service, qr_record):
    result = service.lifecycle.update(qr_record["id"], {"status": "archived"}, OWNER)
    assert result.kind is QRErrorKind.VALIDATION


def test_status_transitions_are_permissive(service, qr_record):
    for status in ("deleted", "active", "expired", "active"):
        assert service.lifecycle.update(qr_record["id"], {"status": status}, OWNER).success


def test_update_identifier_rerenders_image(service, content_store, qr_record):
    result = service.lifecycle.update(qr_record["id"], {"qr_identifier": "ESPRESSO-1"}, OWNER)

    assert result.success
    assert result.data["qr_identifier"] == "ESPRESSO-1"
    assert result.data["image_reference"] == "ESPRESSO-1.png"
    assert result.data["download_url"] == "/api/qr-codes/ESPRESSO-1/download"
    assert content_store.get("ESPRESSO-1.png") is not None
    assert content_store.get(qr_record["image_reference"]) is None


def test_update_identifier_must_be_unique(service, qr_record):
    other = service.lifecycle.create(ITEM_2, OWNER)

    result = service.lifecycle.update(qr_record["id"], {"qr_identifier": other.data["qr_identifier"]}, OWNER)

    assert result.kind is QRErrorKind.CONSTRAINT
    assert result.error.code == "QR_ID_NOT_UNIQUE"


@pytest.mark.parametrize("new_identifier", ["SHELF#2", "a/b"])
def test_update_identifier_must_be_url_safe(service, records, qr_record, new_identifier):
    result = service.lifecycle.update(qr_record["id"], {"qr_identifier": new_identifier}, OWNER)

    assert result.kind is QRErrorKind.VALIDATION
    assert result.error.code == "INVALID_QR_ID"
    stored = find_one(records, "qr_codes", {"id": qr_record["id"]})
    assert stored["qr_identifier"] == qr_record["qr_identifier"]


def test_update_same_identifier_is_a_no_op(service, qr_record):
    result = service.lifecycle.update(qr_record["id"], {"qr_identifier": qr_record["qr_identifier"]}, OWNER)
    assert result.success
    assert result.data["qr_identifier"] == qr_record["qr_identifier"]


# =============================================================================
# 🗑️ delete
# =============================================================================
def test_soft_delete_deactivates(service, records, content_store, qr_record):
    result = service.lifecycle.delete(qr_record["id"], OWNER)

    assert result.success
    assert result.data["action"] == "deactivated"
    assert result.data["hard_delete"] is False
    assert result.data["item_name"] == "Espresso machine"
    assert find_one(records, "qr_codes", {"id": qr_record["id"]})["status"] == "inactive"
    assert content_store.get(qr_record["image_reference"]) is not None


def test_hard_delete_removes_record_and_image(service, content_store, qr_record):
    result = service.lifecycle.delete(qr_record["id"], OWNER, hard=True)

    assert result.success
    assert result.data["action"] == "deleted"
    assert result.data["artifact_deleted"] is True
    assert content_store.get(qr_record["image_reference"]) is None

    lookup = service.scans.lookup(qr_record["qr_identifier"])
    assert lookup.kind is QRErrorKind.NOT_FOUND
    fetch = service.images.fetch_or_regenerate(qr_record["qr_identifier"])
    assert fetch.kind is QRErrorKind.NOT_FOUND
    assert content_store.get(qr_record["image_reference"]) is None


def test_hard_delete_with_missing_image_still_succeeds(service, content_store, qr_record):
    content_store.delete(qr_record["image_reference"])

    result = service.lifecycle.delete(qr_record["id"], OWNER, hard=True)

    assert result.success
    assert result.data["artifact_deleted"] is False


# =============================================================================
# 🔒 ownership isolation
# =============================================================================
def test_other_owner_cannot_touch_record(service, records, qr_record):
    update = service.lifecycle.update(qr_record["id"], {"status": "inactive"}, OTHER_OWNER)
    delete = service.lifecycle.delete(qr_record["id"], OTHER_OWNER, hard=True)
    regenerate = service.lifecycle.regenerate(qr_record["qr_identifier"], OTHER_OWNER)
    listing = service.lifecycle.list_for_item(ITEM_1, OTHER_OWNER)

    for result in (update, delete, regenerate, listing):
        assert result.kind is QRErrorKind.AUTHORIZATION
    assert find_one(records, "qr_codes", {"id": qr_record["id"]})["status"] == "active"


def test_foreign_and_missing_records_share_a_message(service, qr_record):
    foreign = service.lifecycle.update(qr_record["id"], {"status": "inactive"}, OTHER_OWNER)
    missing = service.lifecycle.update("no-such-record", {"status": "inactive"}, OTHER_OWNER)

    assert foreign.message == missing.message == "QR code not found or access denied"
    assert foreign.error.http_status == missing.error.http_status == 404


# =============================================================================
# 📋 listing + regenerate
# =============================================================================
def test_list_for_item(service, qr_record):
    service.lifecycle.create(ITEM_1, OWNER, {"allow_multiple": True, "status": "inactive"})

    everything = service.lifecycle.list_for_item(ITEM_1, OWNER)
    active = service.lifecycle.list_for_item(ITEM_1, OWNER, status="active")

    assert everything.data["count"] == 2
    assert everything.data["item"]["id"] == ITEM_1
    assert [row["qr_identifier"] for row in active.data["qr_codes"]] == [qr_record["qr_identifier"]]


def test_list_for_item_rejects_unknown_sort(service):
    result = service.lifecycle.list_for_item(ITEM_1, OWNER, order_by="owner_id")
    assert result.kind is QRErrorKind.VALIDATION


def test_list_for_requester_spans_items(service, qr_record):
    service.lifecycle.create(ITEM_2, OWNER)
    service.lifecycle.create(FOREIGN_ITEM, OTHER_OWNER)

    result = service.lifecycle.list_for_requester(OWNER)

    assert result.data["count"] == 2
    assert {row["item"]["id"] for row in result.data["qr_codes"]} == {ITEM_1, ITEM_2}


def test_list_for_requester_without_items(service):
    result = service.lifecycle.list_for_requester("nobody")
    assert result.success
    assert result.data == {"qr_codes": [], "count": 0}


def test_owner_can_regenerate(service, content_store, qr_record):
    result = service.lifecycle.regenerate(qr_record["qr_identifier"], OWNER, {"preset": "vector"})

    assert result.success
    assert result.data["filename"] == f"{qr_record['qr_identifier']}.svg"
    assert result.data["item"]["id"] == ITEM_1
    assert result.data["regenerated_at"]
    assert content_store.get(qr_record["image_reference"]) is None
