"""
utils/qr_images.py
────────────────────────────────────────────
Image artifacts for QR records.

- render_and_store     : lookup URL → image bytes → content store
- fetch_or_regenerate  : read the stored image, re-render it when missing
- regenerate           : explicit re-render for an existing record
- delete               : best-effort removal, never fails the caller
────────────────────────────────────────────
"""

from __future__ import annotations

import base64
import logging
from dataclasses import asdict, dataclass, field
from pathlib import PurePath
from typing import Any, Callable, Dict, Mapping, Optional

from utils.content_store import ContentStore
from utils.qr_config import ERROR_CORRECTION_LEVELS, IMAGE_FORMATS, MAX_SIZE, MIN_SIZE, get_render_preset
from utils.qr_generator import render_qr_bytes
from utils.qr_result import QRErrorKind, QRFailure, QRResult, qr_boundary
from utils.record_store import RecordStore, find_one, utc_now_iso

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QRRenderOptions:
    size: int = 256
    margin: int = 1
    error_correction: str = "M"
    dark: str = "#000000"
    light: str = "#FFFFFF"
    image_format: str = "png"

    @classmethod
    def resolve(cls, options: Optional[Mapping[str, Any]] = None, **defaults: Any) -> "QRRenderOptions":
        """
        Merges a preset, caller defaults and explicit options (in that order).
        Raises ValueError for anything the renderer would reject.
        """
        options = dict(options or {})
        merged = {**get_render_preset(options.pop("preset", None)), **defaults}
        merged.update({key: value for key, value in options.items() if value is not None})

        unknown = set(merged) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown render options: {', '.join(sorted(unknown))}")

        try:
            size = int(merged["size"])
            margin = int(merged["margin"])
        except (TypeError, ValueError):
            raise ValueError("size and margin must be integers")
        if not MIN_SIZE <= size <= MAX_SIZE:
            raise ValueError(f"size must be between {MIN_SIZE} and {MAX_SIZE}")
        if not 0 <= margin <= 16:
            raise ValueError("margin must be between 0 and 16")

        level = str(merged["error_correction"]).upper()
        if level not in ERROR_CORRECTION_LEVELS:
            raise ValueError(f"error_correction must be one of: {', '.join(ERROR_CORRECTION_LEVELS)}")
        image_format = str(merged["image_format"]).lower()
        if image_format not in IMAGE_FORMATS:
            raise ValueError(f"image_format must be one of: {', '.join(IMAGE_FORMATS)}")

        return cls(
            size=size,
            margin=margin,
            error_correction=level,
            dark=str(merged["dark"]),
            light=str(merged["light"]),
            image_format=image_format,
        )


@dataclass
class QRArtifact:
    identifier: str
    filename: str
    byte_size: int
    content: bytes = field(repr=False)
    content_type: str
    lookup_url: str
    download_url: str
    reference: str

    @property
    def inline_preview(self) -> str:
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"

    def to_dict(self, include_content: bool = False) -> Dict[str, Any]:
        data = {
            "filename": self.filename,
            "byte_size": self.byte_size,
            "content_type": self.content_type,
            "lookup_url": self.lookup_url,
            "download_url": self.download_url,
            "inline_preview": self.inline_preview,
        }
        if include_content:
            data["content"] = self.content
        return data


def content_type_for(filename: str) -> str:
    return IMAGE_FORMATS.get(PurePath(filename).suffix.lstrip(".").lower(), "application/octet-stream")


class QRImageManager:
    def __init__(
        self,
        content_store: ContentStore,
        records: RecordStore,
        base_url: str,
        download_path: str = "/api/qr-codes/{identifier}/download",
        table: str = "qr_codes",
        renderer: Callable[..., bytes] = render_qr_bytes,
    ) -> None:
        self.content_store = content_store
        self.records = records
        self.base_url = base_url.rstrip("/")
        self.download_path = download_path
        self.table = table
        self.renderer = renderer

    # ---------------------------------------------------------------------
    # naming
    # ---------------------------------------------------------------------
    def lookup_url(self, identifier: str) -> str:
        return f"{self.base_url}/{identifier}"

    def download_url(self, identifier: str) -> str:
        return self.download_path.format(identifier=identifier)

    @staticmethod
    def filename_for(identifier: str, image_format: str = "png") -> str:
        return f"{identifier}.{image_format}"

    # ---------------------------------------------------------------------
    # render + store
    # ---------------------------------------------------------------------
    def build_artifact(self, identifier: str, options: Optional[Mapping[str, Any]] = None) -> QRArtifact:
        """Renders and persists; raises QRFailure on bad options or I/O failure."""
        try:
            opts = QRRenderOptions.resolve(options)
        except ValueError as exc:
            raise QRFailure(QRErrorKind.VALIDATION, str(exc), code="INVALID_RENDER_OPTIONS")

        lookup_url = self.lookup_url(identifier)
        filename = self.filename_for(identifier, opts.image_format)
        content_type = IMAGE_FORMATS[opts.image_format]

        try:
            content = self.renderer(lookup_url, **asdict(opts))
            reference = self.content_store.put(filename, content, content_type)
        except Exception as exc:
            logger.error(f"❌ QR image generation failed for {identifier}: {exc}")
            raise QRFailure(
                QRErrorKind.GENERATION_ERROR,
                "Failed to generate QR code image",
                code="QR_GENERATION_FAILED",
                identifier=identifier,
            )

        logger.info(f"✅ QR image stored: {filename} ({len(content)} bytes)")
        return QRArtifact(
            identifier=identifier,
            filename=filename,
            byte_size=len(content),
            content=content,
            content_type=content_type,
            lookup_url=lookup_url,
            download_url=self.download_url(identifier),
            reference=reference,
        )

    @qr_boundary("QR image generation")
    def render_and_store(self, identifier: str, options: Optional[Mapping[str, Any]] = None) -> QRResult:
        artifact = self.build_artifact(identifier, options)
        return QRResult.ok(artifact, message="QR code image generated")

    # ---------------------------------------------------------------------
    # read with repair
    # ---------------------------------------------------------------------
    @qr_boundary("QR image fetch")
    def fetch_or_regenerate(self, identifier: str, options: Optional[Mapping[str, Any]] = None) -> QRResult:
        record = find_one(self.records, self.table, {"qr_identifier": identifier})
        if record is None:
            raise QRFailure(QRErrorKind.NOT_FOUND, "QR code not found", code="QR_CODE_NOT_FOUND")

        filename = record.get("image_reference") or self.filename_for(identifier)
        content = self.content_store.get(filename)
        if content is not None:
            return QRResult.ok(
                {
                    "content": content,
                    "filename": filename,
                    "byte_size": len(content),
                    "content_type": content_type_for(filename),
                    "regenerated": False,
                    "record": record,
                }
            )

        logger.warning(f"⚠️ QR image missing, regenerating: {filename}")
        artifact = self.build_artifact(identifier, self.options_like(filename, options))
        record = self._attach(record, artifact)
        return QRResult.ok(
            {
                "content": artifact.content,
                "filename": artifact.filename,
                "byte_size": artifact.byte_size,
                "content_type": artifact.content_type,
                "regenerated": True,
                "record": record,
            },
            message="QR code image regenerated",
        )

    # ---------------------------------------------------------------------
    # explicit regeneration
    # ---------------------------------------------------------------------
    @qr_boundary("QR image regeneration")
    def regenerate(self, identifier: str, options: Optional[Mapping[str, Any]] = None) -> QRResult:
        record = find_one(self.records, self.table, {"qr_identifier": identifier})
        if record is None:
            raise QRFailure(QRErrorKind.NOT_FOUND, "QR code not found", code="QR_CODE_NOT_FOUND")

        old_filename = record.get("image_reference")
        artifact = self.build_artifact(identifier, options)
        if old_filename and old_filename != artifact.filename:
            self.delete(old_filename)

        record = self._attach(record, artifact)
        return QRResult.ok(
            {**record, **artifact.to_dict(), "regenerated_at": record.get("updated_at")},
            message="QR code regenerated successfully",
        )

    # ---------------------------------------------------------------------
    # cleanup
    # ---------------------------------------------------------------------
    def delete(self, filename: Optional[str]) -> bool:
        """Best effort. Returns False (and logs) when the file could not be removed."""
        if not filename:
            return False
        try:
            self.content_store.delete(filename)
        except Exception as exc:
            logger.warning(f"⚠️ Could not delete QR image {filename}: {exc}")
            return False
        logger.info(f"🗑️ QR image deleted: {filename}")
        return True

    # ---------------------------------------------------------------------
    # helpers
    # ---------------------------------------------------------------------
    @staticmethod
    def options_like(filename: Optional[str], options: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Keeps the image format of an existing file unless options say otherwise."""
        merged = dict(options or {})
        suffix = PurePath(filename or "").suffix.lstrip(".").lower()
        if suffix in IMAGE_FORMATS:
            merged.setdefault("image_format", suffix)
        return merged

    def _attach(self, record: Dict[str, Any], artifact: QRArtifact) -> Dict[str, Any]:
        """Points the record at the artifact; returns the refreshed record."""
        patch = {
            "image_reference": artifact.filename,
            "download_url": artifact.download_url,
            "updated_at": utc_now_iso(),
        }
        updated = self.records.update(self.table, patch, {"id": record["id"]})
        return updated[0] if updated else {**record, **patch}
