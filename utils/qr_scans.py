"""
utils/qr_scans.py
────────────────────────────────────────────
Public side of a QR code: lookup, validation and scan counting,
plus per-owner analytics.

The scan counter is bumped with a compare-and-swap write:
    UPDATE qr_codes SET scan_count = n + 1 ...
    WHERE id = :id AND scan_count = n AND status = 'active'
An empty result means another scan (or a status change) won the race;
the record is re-read and the write retried.
────────────────────────────────────────────
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from utils.item_access import ItemAccess, ItemDirectory
from utils.qr_result import QRErrorKind, QRFailure, QRResult, qr_boundary, require_text
from utils.record_store import RecordStore, find_one, parse_timestamp, utc_now_iso

logger = logging.getLogger(__name__)

PUBLIC_ITEM_FIELDS = ("id", "name", "description", "location", "media_url", "media_type")
PUBLIC_PROPERTY_FIELDS = ("id", "name", "property_type")
SCAN_ITEM_FIELDS = ("id", "name", "description", "location")


def _pick(source: Optional[Mapping[str, Any]], fields: Iterable[str]) -> Dict[str, Any]:
    source = source or {}
    return {name: source.get(name) for name in fields}


def public_view(record: Mapping[str, Any], access: ItemAccess) -> Dict[str, Any]:
    """Reduced view for unauthenticated callers; never carries owner data."""
    return {
        "qr_identifier": record["qr_identifier"],
        "status": record["status"],
        "scan_count": record.get("scan_count", 0),
        "item": _pick(access.item, PUBLIC_ITEM_FIELDS),
        "property": _pick(access.property, PUBLIC_PROPERTY_FIELDS),
    }


def summarize(records: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Folds QR records into counters: totals, status histogram, scans, latest scan."""
    total = 0
    active = 0
    total_scans = 0
    by_status: Dict[str, int] = {}
    latest = None
    latest_raw = None

    for record in records:
        total += 1
        status = record.get("status") or "unknown"
        by_status[status] = by_status.get(status, 0) + 1
        if status == "active":
            active += 1
        total_scans += int(record.get("scan_count") or 0)

        scanned = parse_timestamp(record.get("last_scanned_at"))
        if scanned is not None and (latest is None or scanned > latest):
            latest, latest_raw = scanned, record.get("last_scanned_at")

    return {
        "total_qr_codes": total,
        "active_qr_codes": active,
        "status_breakdown": by_status,
        "total_scans": total_scans,
        "average_scans_per_qr": round(total_scans / total, 2) if total else 0,
        "most_recent_scan": latest_raw,
    }


class QRScanRecorder:
    def __init__(
        self,
        records: RecordStore,
        items: ItemDirectory,
        table: str = "qr_codes",
        scan_log_table: Optional[str] = None,
        max_conflicts: int = 50,
    ) -> None:
        if max_conflicts < 1:
            raise ValueError("max_conflicts must be at least 1")
        self.records = records
        self.items = items
        self.table = table
        self.scan_log_table = scan_log_table
        self.max_conflicts = max_conflicts

    def _load(self, identifier: str) -> Tuple[Dict[str, Any], ItemAccess]:
        identifier = require_text(identifier, "QR ID is required", "INVALID_QR_ID")
        record = find_one(self.records, self.table, {"qr_identifier": identifier})
        if record is None:
            raise QRFailure(QRErrorKind.NOT_FOUND, "QR code not found", code="QR_CODE_NOT_FOUND")
        access = self.items.describe_item(record["item_reference"])
        if not access.success:
            raise QRFailure(
                QRErrorKind.NOT_FOUND,
                "QR code found but associated item not accessible",
                code="ITEM_NOT_FOUND",
            )
        return record, access

    # =========================================================================
    # 🔎 LOOKUP / VALIDATE
    # =========================================================================
    @qr_boundary("QR code lookup")
    def lookup(self, identifier: str) -> QRResult:
        record, access = self._load(identifier)
        return QRResult.ok(public_view(record, access), message="QR code found")

    @qr_boundary("QR code validation")
    def validate(self, identifier: str) -> QRResult:
        record, access = self._load(identifier)
        valid = record["status"] == "active"
        message = "QR code is valid" if valid else f"QR code is {record['status']} and cannot be scanned"
        return QRResult.ok(
            {
                **public_view(record, access),
                "valid": valid,
                "created_at": record.get("created_at"),
                "last_scanned_at": record.get("last_scanned_at"),
            },
            message=message,
        )

    # =========================================================================
    # 📈 SCAN
    # =========================================================================
    @qr_boundary("QR scan recording")
    def record_scan(self, identifier: str, scan_metadata: Optional[Mapping[str, Any]] = None) -> QRResult:
        record, access = self._load(identifier)

        for attempt in range(1, self.max_conflicts + 1):
            if record["status"] != "active":
                raise QRFailure(
                    QRErrorKind.INACTIVE,
                    f"QR code is {record['status']} and cannot be scanned",
                    code="QR_CODE_INACTIVE",
                    status=record["status"],
                )

            current = int(record.get("scan_count") or 0)
            now = utc_now_iso()
            updated = self.records.update(
                self.table,
                {"scan_count": current + 1, "last_scanned_at": now, "updated_at": now},
                {"id": record["id"], "scan_count": current, "status": "active"},
            )
            if updated:
                scanned = updated[0]
                break

            # lost the race: re-read and try again
            logger.debug(f"🔁 Scan conflict on {record['qr_identifier']} (attempt {attempt})")
            record = find_one(self.records, self.table, {"id": record["id"]})
            if record is None:
                raise QRFailure(QRErrorKind.NOT_FOUND, "QR code not found", code="QR_CODE_NOT_FOUND")
        else:
            raise QRFailure(
                QRErrorKind.SERVER_ERROR,
                "QR scan could not be recorded, please retry",
                code="SCAN_CONFLICT",
                attempts=self.max_conflicts,
            )

        self._append_scan_log(scanned, scan_metadata)
        logger.info(f"📈 QR {scanned['qr_identifier']} scanned ({scanned['scan_count']})")
        return QRResult.ok(
            {
                "qr_identifier": scanned["qr_identifier"],
                "scan_count": scanned["scan_count"],
                "last_scanned_at": scanned["last_scanned_at"],
                "item": _pick(access.item, SCAN_ITEM_FIELDS),
            },
            message="QR code scan recorded successfully",
        )

    def _append_scan_log(self, record: Mapping[str, Any], metadata: Optional[Mapping[str, Any]]) -> None:
        if not self.scan_log_table:
            return
        metadata = metadata or {}
        user_agent = metadata.get("user_agent")
        try:
            self.records.insert(
                self.scan_log_table,
                {
                    "id": str(uuid.uuid4()),
                    "qr_code_id": record["id"],
                    "qr_identifier": record["qr_identifier"],
                    "ip_address": metadata.get("ip_address"),
                    "user_agent": user_agent[:255] if isinstance(user_agent, str) else None,
                    "notes": metadata.get("notes"),
                    "scanned_at": record["last_scanned_at"],
                },
            )
        except Exception as exc:
            logger.warning(f"⚠️ Scan log entry for {record['qr_identifier']} not written: {exc}")

    # =========================================================================
    # 📊 ANALYTICS
    # =========================================================================
    @qr_boundary("QR analytics")
    def analytics(self, requester: str, item_reference: Optional[str] = None) -> QRResult:
        requester = require_text(requester, "Requester is required", "MISSING_REQUESTER")

        if item_reference is not None:
            item_reference = require_text(item_reference, "Item ID must be a non-empty string", "INVALID_ITEM_ID")
            access = self.items.get_item(item_reference, requester)
            if not access.success:
                raise QRFailure(
                    QRErrorKind.AUTHORIZATION,
                    "Item not found or access denied",
                    code="ITEM_NOT_FOUND",
                    item_reference=item_reference,
                )
            rows = self.records.select(self.table, filters={"item_reference": item_reference})
            return QRResult.ok(
                {"scope": "item", "item_id": item_reference, **summarize(rows)},
                message="QR analytics for item",
            )

        items = self.items.list_items(requester)
        rows = []
        if items:
            rows = self.records.select(
                self.table, filters={"item_reference": [item["id"] for item in items]}
            )

        breakdown = []
        for item in items:
            item_rows = [row for row in rows if row["item_reference"] == item["id"]]
            if not item_rows:
                continue
            stats = summarize(item_rows)
            breakdown.append(
                {
                    "item_id": item["id"],
                    "item_name": item.get("name"),
                    "qr_codes": stats["total_qr_codes"],
                    "total_scans": stats["total_scans"],
                    "active_qr_codes": stats["active_qr_codes"],
                }
            )

        return QRResult.ok(
            {"scope": "user", **summarize(rows), "item_breakdown": breakdown},
            message="QR analytics for user",
        )
