from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from utils.qr_result import QRResult
from utils.qr_service import QRService, build_qr_service

router = APIRouter(prefix="/api/qr-codes", tags=["QR Codes"])


# =============================================================================
# 📥 Request bodies
# =============================================================================
class RenderOptionsIn(BaseModel):
    preset: Optional[str] = Field(default=None, description="default | label | high_contrast | compact | vector")
    size: Optional[int] = None
    margin: Optional[int] = None
    error_correction: Optional[str] = None
    dark: Optional[str] = None
    light: Optional[str] = None
    image_format: Optional[str] = None


class CreateForItemIn(RenderOptionsIn):
    allow_multiple: bool = False
    custom_identifier: Optional[str] = Field(default=None, max_length=255)
    status: Optional[str] = None


class CreateQRIn(CreateForItemIn):
    item_id: str


class UpdateQRIn(BaseModel):
    status: Optional[str] = None
    qr_identifier: Optional[str] = None


class ScanIn(BaseModel):
    notes: Optional[str] = None


# =============================================================================
# 🔌 Dependencies
# =============================================================================
@lru_cache(maxsize=1)
def get_qr_service() -> QRService:
    return build_qr_service()


def get_requester(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


def _respond(result: QRResult, success_status: int = 200) -> JSONResponse:
    """QRResult → {success, message, data, error} with the matching status code."""
    body: dict[str, Any] = {"success": result.success, "message": result.message}
    if result.success:
        body["data"] = result.data
        return JSONResponse(status_code=success_status, content=jsonable_encoder(body))

    error = result.error
    body["error"] = {"type": error.kind.value, "code": error.code, "message": error.message}
    if result.data is not None:
        body["data"] = result.data
    return JSONResponse(status_code=error.http_status, content=jsonable_encoder(body))


# =============================================================================
# 🩺 Health + analytics (before /{qr_identifier})
# =============================================================================
@router.get("/health")
def health(service: QRService = Depends(get_qr_service)):
    report = service.health_check()
    return JSONResponse(status_code=200 if report["healthy"] else 503, content=report)


@router.get("/analytics")
def analytics(
    item_id: Optional[str] = None,
    service: QRService = Depends(get_qr_service),
    requester: str = Depends(get_requester),
):
    return _respond(service.scans.analytics(requester, item_reference=item_id))


# =============================================================================
# ➕ Create + list (owner)
# =============================================================================
@router.post("/")
def create_qr(
    payload: CreateQRIn,
    service: QRService = Depends(get_qr_service),
    requester: str = Depends(get_requester),
):
    options = payload.model_dump(exclude_none=True, exclude={"item_id"})
    return _respond(service.lifecycle.create(payload.item_id, requester, options), success_status=201)


@router.get("/")
def list_qrs(
    status: Optional[str] = None,
    order_by: str = "created_at",
    descending: bool = True,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    service: QRService = Depends(get_qr_service),
    requester: str = Depends(get_requester),
):
    return _respond(
        service.lifecycle.list_for_requester(
            requester, status=status, order_by=order_by, descending=descending, limit=limit
        )
    )


@router.post("/items/{item_id}")
def create_qr_for_item(
    item_id: str,
    payload: Optional[CreateForItemIn] = None,
    service: QRService = Depends(get_qr_service),
    requester: str = Depends(get_requester),
):
    options = payload.model_dump(exclude_none=True) if payload else {}
    return _respond(service.lifecycle.create(item_id, requester, options), success_status=201)


@router.get("/items/{item_id}")
def list_qrs_for_item(
    item_id: str,
    status: Optional[str] = None,
    order_by: str = "created_at",
    descending: bool = False,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    service: QRService = Depends(get_qr_service),
    requester: str = Depends(get_requester),
):
    return _respond(
        service.lifecycle.list_for_item(
            item_id, requester, status=status, order_by=order_by, descending=descending, limit=limit
        )
    )


# =============================================================================
# 🌍 Public: lookup, scan, download, validate
# =============================================================================
@router.get("/{qr_identifier}")
def lookup_qr(qr_identifier: str, service: QRService = Depends(get_qr_service)):
    return _respond(service.scans.lookup(qr_identifier))


@router.post("/{qr_identifier}/scan")
def scan_qr(
    qr_identifier: str,
    request: Request,
    payload: Optional[ScanIn] = None,
    service: QRService = Depends(get_qr_service),
):
    metadata = {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
        "notes": payload.notes if payload else None,
    }
    return _respond(service.scans.record_scan(qr_identifier, metadata))


@router.get("/{qr_identifier}/download")
def download_qr(qr_identifier: str, service: QRService = Depends(get_qr_service)):
    result = service.images.fetch_or_regenerate(qr_identifier)
    if not result.success:
        return _respond(result)

    image = result.data
    return Response(
        content=image["content"],
        media_type=image["content_type"],
        headers={
            "Content-Disposition": f'inline; filename="{image["filename"]}"',
            "X-QR-Regenerated": "true" if image["regenerated"] else "false",
        },
    )


@router.post("/{qr_identifier}/validate")
def validate_qr(qr_identifier: str, service: QRService = Depends(get_qr_service)):
    return _respond(service.scans.validate(qr_identifier))


# =============================================================================
# ♻️ Owner: regenerate, update, delete
# =============================================================================
@router.post("/{qr_identifier}/regenerate")
def regenerate_qr(
    qr_identifier: str,
    payload: Optional[RenderOptionsIn] = None,
    service: QRService = Depends(get_qr_service),
    requester: str = Depends(get_requester),
):
    options = payload.model_dump(exclude_none=True) if payload else None
    return _respond(service.lifecycle.regenerate(qr_identifier, requester, options))


@router.put("/{record_id}")
def update_qr(
    record_id: str,
    payload: UpdateQRIn,
    service: QRService = Depends(get_qr_service),
    requester: str = Depends(get_requester),
):
    return _respond(service.lifecycle.update(record_id, payload.model_dump(exclude_none=True), requester))


@router.delete("/{record_id}")
def delete_qr(
    record_id: str,
    hard: bool = False,
    service: QRService = Depends(get_qr_service),
    requester: str = Depends(get_requester),
):
    return _respond(service.lifecycle.delete(record_id, requester, hard=hard))
