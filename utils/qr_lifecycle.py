"""
utils/qr_lifecycle.py
────────────────────────────────────────────
QR record lifecycle: create / update / delete / list / regenerate.

Status is one of active | inactive | expired | deleted. Any status can be
set through ``update``; a hard delete removes the record for good.

Creation spans two stores (records + images) without a shared transaction:
when the image step fails the freshly inserted record is deleted again.
────────────────────────────────────────────
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from models.qrcode import QR_STATUSES
from utils.item_access import ItemAccess, ItemDirectory
from utils.qr_ids import QRIdentifierGenerator, is_qr_identifier
from utils.qr_images import QRImageManager, QRRenderOptions
from utils.qr_result import QRErrorKind, QRFailure, QRResult, qr_boundary, require_text
from utils.record_store import RecordStore, find_one, utc_now_iso

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = ("created_at", "updated_at", "scan_count", "last_scanned_at", "qr_identifier")
MUTABLE_FIELDS = ("status", "qr_identifier")


@dataclass
class QRCreateOptions:
    allow_multiple: bool = False
    custom_identifier: Optional[str] = None
    status: str = "active"
    render: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]]) -> "QRCreateOptions":
        """Splits creation flags from render options (everything else)."""
        if isinstance(options, cls):
            return options
        opts = dict(options or {})
        render = dict(opts.pop("render", None) or {})
        allow_multiple = bool(opts.pop("allow_multiple", False))
        custom_identifier = opts.pop("custom_identifier", None)
        status = opts.pop("status", None) or "active"
        render.update({key: value for key, value in opts.items() if value is not None})
        return cls(
            allow_multiple=allow_multiple,
            custom_identifier=custom_identifier,
            status=status,
            render=render,
        )


def check_status(status: Any) -> str:
    if status not in QR_STATUSES:
        raise QRFailure(
            QRErrorKind.VALIDATION,
            f"Invalid status. Must be one of: {', '.join(QR_STATUSES)}",
            code="INVALID_STATUS",
        )
    return status


def check_identifier(value: Any, message: str) -> str:
    identifier = require_text(value, message, "INVALID_QR_ID")
    if not is_qr_identifier(identifier):
        raise QRFailure(
            QRErrorKind.VALIDATION,
            "QR ID may only contain letters, digits, hyphens and underscores",
            code="INVALID_QR_ID",
            qr_identifier=identifier,
        )
    return identifier


class QRLifecycle:
    def __init__(
        self,
        records: RecordStore,
        items: ItemDirectory,
        images: QRImageManager,
        identifiers: QRIdentifierGenerator,
        table: str = "qr_codes",
        max_attempts: int = 5,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.records = records
        self.items = items
        self.images = images
        self.identifiers = identifiers
        self.table = table
        self.max_attempts = max_attempts

    # =========================================================================
    # ➕ CREATE
    # =========================================================================
    @qr_boundary("QR code creation")
    def create(
        self,
        item_reference: str,
        requester: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> QRResult:
        opts = QRCreateOptions.from_mapping(options)

        # === 1️⃣ Input ===
        item_reference = require_text(item_reference, "Item ID is required and must be a string", "INVALID_ITEM_ID")
        requester = require_text(requester, "Requester is required", "MISSING_REQUESTER")
        check_status(opts.status)
        custom_identifier = None
        if opts.custom_identifier is not None:
            custom_identifier = check_identifier(opts.custom_identifier, "Custom QR ID must be a non-empty string")
        try:
            QRRenderOptions.resolve(opts.render)
        except ValueError as exc:
            raise QRFailure(QRErrorKind.VALIDATION, str(exc), code="INVALID_RENDER_OPTIONS")

        # === 2️⃣ Ownership ===
        access = self._owned_item(item_reference, requester)

        # === 3️⃣ One active code per item ===
        if not opts.allow_multiple:
            existing = self.records.select(
                self.table,
                filters={"item_reference": item_reference, "status": "active"},
                order_by="created_at",
                limit=1,
            )
            if existing:
                raise QRFailure(
                    QRErrorKind.CONSTRAINT,
                    "Item already has an active QR code",
                    code="QR_CODE_EXISTS",
                    data=existing[0],
                    existing_qr_identifier=existing[0]["qr_identifier"],
                )

        # === 4️⃣ Identifier ===
        identifier = self._resolve_identifier(item_reference, custom_identifier)

        # === 5️⃣ Record ===
        now = utc_now_iso()
        record = self.records.insert(
            self.table,
            {
                "id": str(uuid.uuid4()),
                "qr_identifier": identifier,
                "item_reference": item_reference,
                "status": opts.status,
                "scan_count": 0,
                "last_scanned_at": None,
                "image_reference": None,
                "download_url": None,
                "created_at": now,
                "updated_at": now,
            },
        )
        logger.info(f"🆕 QR record {identifier} created for item {item_reference}")

        # concurrent creates can both pass step 3; undo an insert that leaves two active
        if not opts.allow_multiple and opts.status == "active":
            active = self.records.count(self.table, {"item_reference": item_reference, "status": "active"})
            if active > 1:
                self._rollback(record, "item gained another active QR code concurrently")
                raise QRFailure(
                    QRErrorKind.CONSTRAINT,
                    "Item already has an active QR code",
                    code="QR_CODE_EXISTS",
                )

        # === 6️⃣ Image (compensate on failure) ===
        image = self.images.render_and_store(identifier, opts.render)
        if not image.success:
            self._rollback(record, "image generation failed")
            return image
        artifact = image.data

        # === 7️⃣ Attach image ===
        try:
            updated = self.records.update(
                self.table,
                {
                    "image_reference": artifact.filename,
                    "download_url": artifact.download_url,
                    "updated_at": utc_now_iso(),
                },
                {"id": record["id"]},
            )
        except Exception:
            self.images.delete(artifact.filename)
            self._rollback(record, "attaching the image failed")
            raise
        if updated:
            record = updated[0]

        # === 8️⃣ Response ===
        return QRResult.ok(
            {**record, **artifact.to_dict(), "item": access.item, "property": access.property},
            message="QR code generated successfully",
        )

    def _resolve_identifier(self, item_reference: str, custom_identifier: Optional[str]) -> str:
        if custom_identifier:
            if not self.identifiers.ensure_unique(custom_identifier):
                raise QRFailure(
                    QRErrorKind.CONSTRAINT,
                    "QR ID is already in use",
                    code="QR_ID_NOT_UNIQUE",
                    qr_identifier=custom_identifier,
                )
            return custom_identifier

        for attempt in range(1, self.max_attempts + 1):
            candidate = self.identifiers.generate(item_reference)
            if self.identifiers.ensure_unique(candidate):
                return candidate
            logger.warning(f"⚠️ QR ID collision on attempt {attempt}/{self.max_attempts}: {candidate}")

        raise QRFailure(
            QRErrorKind.GENERATION_ERROR,
            "Failed to generate unique QR ID after multiple attempts",
            code="UNIQUE_ID_GENERATION_FAILED",
            attempts=self.max_attempts,
        )

    def _rollback(self, record: Mapping[str, Any], reason: str) -> None:
        """Deletes a half-created record. A failure here is logged, never raised."""
        try:
            self.records.delete(self.table, {"id": record["id"]})
        except Exception as exc:
            logger.error(
                f"❌ Rollback failed ({reason}): orphan QR record {record['id']} "
                f"({record.get('qr_identifier')}) left behind: {exc}"
            )
            return
        logger.warning(f"↩️ QR record {record.get('qr_identifier')} rolled back: {reason}")

    # =========================================================================
    # ✏️ UPDATE
    # =========================================================================
    @qr_boundary("QR code update")
    def update(self, record_id: str, patch: Optional[Mapping[str, Any]], requester: str) -> QRResult:
        record, access = self._owned_record(record_id, requester)

        if not isinstance(patch, Mapping):
            raise QRFailure(QRErrorKind.VALIDATION, "Update data is required", code="MISSING_UPDATE_DATA")

        changes: Dict[str, Any] = {
            key: patch[key] for key in MUTABLE_FIELDS if patch.get(key) is not None
        }
        if not changes:
            raise QRFailure(QRErrorKind.VALIDATION, "No valid fields to update", code="NO_VALID_FIELDS")

        if "status" in changes:
            check_status(changes["status"])

        new_identifier = None
        if "qr_identifier" in changes:
            new_identifier = check_identifier(changes["qr_identifier"], "QR ID must be a non-empty string")
            if new_identifier == record["qr_identifier"]:
                del changes["qr_identifier"]
                new_identifier = None
                if not changes:
                    return QRResult.ok({**record, "item": access.item}, message="QR code unchanged")
            elif not self.identifiers.ensure_unique(new_identifier):
                raise QRFailure(
                    QRErrorKind.CONSTRAINT,
                    "New QR ID is not unique",
                    code="QR_ID_NOT_UNIQUE",
                    qr_identifier=new_identifier,
                )

        # a new identifier changes the encoded lookup URL: re-render before the write
        artifact = None
        if new_identifier:
            changes["qr_identifier"] = new_identifier
            artifact = self.images.build_artifact(
                new_identifier, self.images.options_like(record.get("image_reference"))
            )
            changes["image_reference"] = artifact.filename
            changes["download_url"] = artifact.download_url

        changes["updated_at"] = utc_now_iso()
        try:
            updated = self.records.update(self.table, changes, {"id": record["id"]})
        except Exception:
            if artifact:
                self.images.delete(artifact.filename)
            raise

        if not updated:
            if artifact:
                self.images.delete(artifact.filename)
            raise QRFailure(QRErrorKind.NOT_FOUND, "QR code not found or access denied", code="QR_CODE_NOT_FOUND")

        old_image = record.get("image_reference")
        if artifact and old_image and old_image != artifact.filename:
            self.images.delete(old_image)

        logger.info(f"✏️ QR record {updated[0]['qr_identifier']} updated: {', '.join(sorted(changes))}")
        return QRResult.ok({**updated[0], "item": access.item}, message="QR code updated successfully")

    # =========================================================================
    # 🗑️ DELETE
    # =========================================================================
    @qr_boundary("QR code deletion")
    def delete(self, record_id: str, requester: str, hard: bool = False) -> QRResult:
        record, access = self._owned_record(record_id, requester)

        if hard:
            self.records.delete(self.table, {"id": record["id"]})
            artifact_deleted = self.images.delete(record.get("image_reference"))
            action, message = "deleted", "QR code permanently deleted"
        else:
            self.records.update(
                self.table,
                {"status": "inactive", "updated_at": utc_now_iso()},
                {"id": record["id"]},
            )
            artifact_deleted = False
            action, message = "deactivated", "QR code deactivated"

        logger.info(f"🗑️ QR record {record['qr_identifier']} {action}")
        return QRResult.ok(
            {
                "action": action,
                "record_id": record["id"],
                "qr_identifier": record["qr_identifier"],
                "item_name": (access.item or {}).get("name"),
                "hard_delete": bool(hard),
                "artifact_deleted": artifact_deleted,
            },
            message=message,
        )

    # =========================================================================
    # 📋 LISTING
    # =========================================================================
    @qr_boundary("QR code listing")
    def list_for_item(
        self,
        item_reference: str,
        requester: str,
        status: Optional[str] = None,
        order_by: str = "created_at",
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> QRResult:
        item_reference = require_text(item_reference, "Item ID is required and must be a string", "INVALID_ITEM_ID")
        requester = require_text(requester, "Requester is required", "MISSING_REQUESTER")
        access = self._owned_item(item_reference, requester)

        filters: Dict[str, Any] = {"item_reference": item_reference}
        if status is not None:
            filters["status"] = check_status(status)
        rows = self.records.select(
            self.table,
            filters=filters,
            order_by=self._order_column(order_by),
            descending=descending,
            limit=self._limit(limit),
        )
        return QRResult.ok(
            {"qr_codes": rows, "count": len(rows), "item": access.item},
            message=f"Found {len(rows)} QR code(s) for item",
        )

    @qr_boundary("QR code listing")
    def list_for_requester(
        self,
        requester: str,
        status: Optional[str] = None,
        order_by: str = "created_at",
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> QRResult:
        requester = require_text(requester, "Requester is required", "MISSING_REQUESTER")
        items = self.items.list_items(requester)
        if not items:
            return QRResult.ok({"qr_codes": [], "count": 0}, message="No items found for user")

        by_id = {item["id"]: item for item in items}
        filters: Dict[str, Any] = {"item_reference": list(by_id)}
        if status is not None:
            filters["status"] = check_status(status)
        rows = self.records.select(
            self.table,
            filters=filters,
            order_by=self._order_column(order_by),
            descending=descending,
            limit=self._limit(limit),
        )
        qr_codes = [{**row, "item": by_id.get(row["item_reference"])} for row in rows]
        return QRResult.ok(
            {"qr_codes": qr_codes, "count": len(qr_codes)},
            message=f"Found {len(qr_codes)} QR code(s)",
        )

    # =========================================================================
    # ♻️ REGENERATE
    # =========================================================================
    @qr_boundary("QR code regeneration")
    def regenerate(
        self,
        identifier: str,
        requester: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> QRResult:
        identifier = require_text(identifier, "QR ID is required", "INVALID_QR_ID")
        requester = require_text(requester, "Requester is required", "MISSING_REQUESTER")
        record = find_one(self.records, self.table, {"qr_identifier": identifier})
        if record is None:
            raise QRFailure(QRErrorKind.NOT_FOUND, "QR code not found", code="QR_CODE_NOT_FOUND")
        access = self.items.get_item(record["item_reference"], requester)
        if not access.success:
            raise QRFailure(
                QRErrorKind.AUTHORIZATION, "QR code not found or access denied", code="QR_CODE_NOT_FOUND"
            )

        result = self.images.regenerate(identifier, options)
        if result.success:
            result.data["item"] = access.item
        return result

    # =========================================================================
    # 🔒 helpers
    # =========================================================================
    def _owned_item(self, item_reference: str, requester: str) -> ItemAccess:
        access = self.items.get_item(item_reference, requester)
        if not access.success:
            raise QRFailure(
                QRErrorKind.AUTHORIZATION,
                "Item not found or access denied",
                code="ITEM_NOT_FOUND",
                item_reference=item_reference,
            )
        return access

    def _owned_record(self, record_id: str, requester: str) -> Tuple[Dict[str, Any], ItemAccess]:
        """Loads a record the requester may act on. Missing and foreign look the same."""
        record_id = require_text(record_id, "QR code ID is required", "INVALID_RECORD_ID")
        requester = require_text(requester, "Requester is required", "MISSING_REQUESTER")

        record = find_one(self.records, self.table, {"id": record_id})
        if record is None:
            raise QRFailure(QRErrorKind.NOT_FOUND, "QR code not found or access denied", code="QR_CODE_NOT_FOUND")

        access = self.items.get_item(record["item_reference"], requester)
        if not access.success:
            raise QRFailure(
                QRErrorKind.AUTHORIZATION, "QR code not found or access denied", code="QR_CODE_NOT_FOUND"
            )
        return record, access

    @staticmethod
    def _order_column(order_by: Optional[str]) -> str:
        column = order_by or "created_at"
        if column not in SORTABLE_COLUMNS:
            raise QRFailure(
                QRErrorKind.VALIDATION,
                f"Cannot sort by '{column}'. Use one of: {', '.join(SORTABLE_COLUMNS)}",
                code="INVALID_SORT",
            )
        return column

    @staticmethod
    def _limit(limit: Optional[int]) -> Optional[int]:
        if limit is None:
            return None
        try:
            value = int(limit)
        except (TypeError, ValueError):
            raise QRFailure(QRErrorKind.VALIDATION, "limit must be an integer", code="INVALID_LIMIT")
        if value < 1:
            raise QRFailure(QRErrorKind.VALIDATION, "limit must be positive", code="INVALID_LIMIT")
        return value
