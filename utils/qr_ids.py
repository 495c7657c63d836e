"""
utils/qr_ids.py
────────────────────────────────────────────
Public QR identifiers.

Format: QR-<first 8 chars of item id>-<epoch ms>-<6 char base36 suffix>
e.g.    QR-3F2A9C1B-1760781234567-K7Q2ZD

Custom identifiers only need to be URL-path safe: letters, digits,
"-" and "_", at most 255 characters.
────────────────────────────────────────────
"""

from __future__ import annotations

import re
import secrets
import time
from typing import Any, Callable, Optional

from utils.record_store import RecordStore

BASE36_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
SUFFIX_LENGTH = 6
ITEM_PREFIX_LENGTH = 8

QR_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_-]{1,255}$")


def random_base36(length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def is_qr_identifier(value: Any) -> bool:
    """True for identifiers that can sit in a lookup URL path segment as-is."""
    return isinstance(value, str) and QR_IDENTIFIER_RE.fullmatch(value) is not None


class QRIdentifierGenerator:
    def __init__(
        self,
        records: RecordStore,
        table: str = "qr_codes",
        clock: Callable[[], float] = time.time,
        suffix: Callable[[], str] = random_base36,
    ) -> None:
        self.records = records
        self.table = table
        self.clock = clock
        self.suffix = suffix

    def generate(self, item_reference: str, now_ms: Optional[int] = None) -> str:
        """Builds a fresh identifier; no store access."""
        timestamp = now_ms if now_ms is not None else int(self.clock() * 1000)
        prefix = item_reference[:ITEM_PREFIX_LENGTH].upper()
        return f"QR-{prefix}-{timestamp}-{self.suffix().upper()}"

    def ensure_unique(self, identifier: str) -> bool:
        """True when no record of any status uses this identifier."""
        return self.records.count(self.table, {"qr_identifier": identifier}) == 0
