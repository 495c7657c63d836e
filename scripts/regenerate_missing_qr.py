#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Script: regenerate_missing_qr.py
Description:
    Walks every QR record and re-renders images that are missing from the
    content store (local directory or Supabase bucket). Records whose image
    is present are skipped.
"""

import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Any, Dict, Literal, Mapping, Tuple

# ─────────────────────────────────────────────
# 🧩 project root on sys.path
# ─────────────────────────────────────────────
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.append(BASE_DIR)

# ─────────────────────────────────────────────
# 📦 internal imports
# ─────────────────────────────────────────────
from utils.qr_service import QR_TABLE, QRService, build_qr_service  # noqa: E402

# ─────────────────────────────────────────────
# 📁 log file
# ─────────────────────────────────────────────
LOG_FILE = os.getenv("QR_REGEN_LOG", os.path.join(BASE_DIR, "scripts", "qr_regeneration.log"))


# ─────────────────────────────────────────────
# 🎨 coloured output
# ─────────────────────────────────────────────
class Color:
    CYAN = "\033[96m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    RESET = "\033[0m"


# ─────────────────────────────────────────────
# 🧩 logging helper
# ─────────────────────────────────────────────
def log_message(message: str, level: str = "INFO") -> None:
    """Timestamped line to the console (coloured) and to LOG_FILE."""
    timestamp = datetime.now().strftime("[%Y-%m-%d %H:%M:%S]")
    line = f"{timestamp} [{level}] {message}"

    color = {
        "INFO": Color.CYAN,
        "OK": Color.GREEN,
        "WARN": Color.YELLOW,
        "ERROR": Color.RED,
    }.get(level, Color.RESET)

    print(color + line + Color.RESET)
    with open(LOG_FILE, "a", encoding="utf-8") as log:
        log.write(line + "\n")


# ─────────────────────────────────────────────
# 🔄 one record
# ─────────────────────────────────────────────
def regenerate_single_qr(
    service: QRService, record: Mapping[str, Any]
) -> Tuple[Literal["skip", "regen", "error"], str]:
    """
    Returns (status, identifier):
        "skip"  → image present
        "regen" → image was missing and has been re-rendered
        "error" → re-rendering failed
    """
    identifier = str(record.get("qr_identifier") or "")
    result = service.images.fetch_or_regenerate(identifier)

    if not result.success:
        log_message(f"❌ {identifier}: {result.message}", level="ERROR")
        return "error", identifier
    if result.data["regenerated"]:
        log_message(f"✅ Regenerated: {result.data['filename']}", level="OK")
        return "regen", identifier
    return "skip", identifier


# ─────────────────────────────────────────────
# 🔄 all records (thread pool)
# ─────────────────────────────────────────────
def regenerate_missing_qr_codes(service: QRService, max_workers: int = 4) -> Dict[str, Any]:
    """Checks every record and regenerates missing images. Returns the summary."""
    start_time = time.time()

    records = service.records.select(QR_TABLE, order_by="created_at")
    total = len(records)
    log_message(f"🔍 {total} QR records found – checking images...")

    regenerated_count = skipped_count = error_count = 0

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(regenerate_single_qr, service, record) for record in records]
        for future in as_completed(futures):
            status, _ = future.result()
            if status == "regen":
                regenerated_count += 1
            elif status == "skip":
                skipped_count += 1
            else:
                error_count += 1

    elapsed = time.time() - start_time
    log_message("────────────────────────────────────────────")
    log_message("✅ Done! Summary:")
    log_message(f"• Total: {total}")
    log_message(f"• Regenerated: {regenerated_count}")
    log_message(f"• Skipped: {skipped_count}")
    log_message(f"• Errors: {error_count}")
    log_message(f"• Runtime: {elapsed:.2f} seconds")
    log_message("────────────────────────────────────────────")

    return {
        "total": total,
        "regenerated": regenerated_count,
        "skipped": skipped_count,
        "errors": error_count,
        "runtime": elapsed,
    }


# ─────────────────────────────────────────────
# 🚀 main
# ─────────────────────────────────────────────
if __name__ == "__main__":
    print("============================================")
    print("🧠  Property Item QR – regenerate missing images")
    print("============================================\n")

    log_message("📁 Starting regeneration...", level="INFO")
    summary = regenerate_missing_qr_codes(build_qr_service(), max_workers=6)
    log_message("✅ Script finished.", level="OK" if not summary["errors"] else "WARN")
    print(f"\n📄 Log written to: {LOG_FILE}\n")
