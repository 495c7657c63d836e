from __future__ import annotations

import pytest

from helpers.memory_store import MemoryRecordStore
from utils.qr_ids import BASE36_ALPHABET, QRIdentifierGenerator, is_qr_identifier, random_base36


def test_generate_uses_item_prefix_clock_and_suffix():
    generator = QRIdentifierGenerator(
        MemoryRecordStore(), clock=lambda: 1760781234.5, suffix=lambda: "k7q2zd"
    )

    identifier = generator.generate("a1b2c3d4-0000-4000-8000-000000000001")

    assert identifier == "QR-A1B2C3D4-1760781234500-K7Q2ZD"
    assert is_qr_identifier(identifier)


def test_generate_short_item_reference():
    generator = QRIdentifierGenerator(MemoryRecordStore(), suffix=lambda: "ABCDEF")
    assert generator.generate("x9", now_ms=42) == "QR-X9-42-ABCDEF"


def test_random_suffix_is_base36():
    suffixes = {random_base36() for _ in range(50)}
    for suffix in suffixes:
        assert len(suffix) == 6
        assert set(suffix) <= set(BASE36_ALPHABET)
    assert len(suffixes) > 1


def test_generated_identifiers_differ():
    generator = QRIdentifierGenerator(MemoryRecordStore())
    identifiers = {generator.generate("a1b2c3d4-item") for _ in range(200)}
    assert len(identifiers) == 200


def test_ensure_unique_checks_every_status():
    store = MemoryRecordStore()
    generator = QRIdentifierGenerator(store)
    store.insert("qr_codes", {"id": "1", "qr_identifier": "QR-A-1-AAAAAA", "status": "deleted"})

    assert generator.ensure_unique("QR-A-1-AAAAAA") is False
    assert generator.ensure_unique("QR-A-1-BBBBBB") is True


def test_is_qr_identifier_accepts_url_safe_shapes():
    assert is_qr_identifier("BOILER-MAIN")
    assert is_qr_identifier("shelf_2")
    assert is_qr_identifier("A" * 255)


@pytest.mark.parametrize("value", ["", "SHELF#2", "a/b", "two words", "why?", "tail\n", "A" * 256, None, 42])
def test_is_qr_identifier_rejects_other_shapes(value):
    assert not is_qr_identifier(value)
