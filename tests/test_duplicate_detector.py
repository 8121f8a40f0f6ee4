"""
Unit tests for fingerprints and duplicate/conflict detection.
"""

import logging
from unittest.mock import Mock

import pytest

from conftest import make_invoice
from invoice_intake.output_handler import DuplicateDetector, DuplicateStatus, fingerprint
from invoice_intake.utils.exceptions import DatabaseError


class TestFingerprint:

    def test_stable_for_same_input(self):
        assert fingerprint("Acme", "INV-100", 5000) == fingerprint("Acme", "INV-100", 5000)

    def test_is_md5_of_joined_fields(self):
        import hashlib
        expected = hashlib.md5(b"Acme|INV-100|5000").hexdigest()
        assert fingerprint("Acme", "INV-100", 5000) == expected

    @pytest.mark.parametrize("vendor, number, amount", [
        ("Acme Corp", "INV-100", 5000),
        ("Acme", "INV-101", 5000),
        ("Acme", "INV-100", 5001),
    ])
    def test_changes_when_any_field_changes(self, vendor, number, amount):
        assert fingerprint(vendor, number, amount) != fingerprint("Acme", "INV-100", 5000)


class TestDuplicateDetector:

    def test_clean_on_empty_store(self, store):
        check = DuplicateDetector(store).check("Acme", "INV-100", 5000)

        assert check.status is DuplicateStatus.CLEAN
        assert check.checksum == fingerprint("Acme", "INV-100", 5000)
        assert check.existing_id is None

    def test_duplicate_by_checksum(self, store):
        existing = store.insert(make_invoice())

        check = DuplicateDetector(store).check("Acme", "INV-100", 5000)

        assert check.status is DuplicateStatus.DUPLICATE
        assert check.existing_id == existing.id
        assert check.existing_amount == 5000

    def test_duplicate_by_fields_when_checksum_missing(self, store):
        existing = store.insert(make_invoice(duplicate_checksum=None))

        detector = DuplicateDetector(store)

        assert detector.is_duplicate("Acme", "INV-100", 5000) is True
        assert detector.check("Acme", "INV-100", 5000).existing_id == existing.id

    def test_different_amount_is_conflict(self, store):
        existing = store.insert(make_invoice())

        check = DuplicateDetector(store).check("Acme", "INV-100", 7500)

        assert check.status is DuplicateStatus.CONFLICT
        assert check.existing_id == existing.id
        assert check.existing_amount == 5000
        assert not check.is_duplicate

    def test_other_vendor_is_clean(self, store):
        store.insert(make_invoice())

        check = DuplicateDetector(store).check("Initech", "INV-100", 5000)

        assert check.status is DuplicateStatus.CLEAN

    def test_store_failure_fails_open(self, caplog):
        failing_store = Mock()
        failing_store.find_by_checksum.side_effect = DatabaseError("find_by_checksum", "disk I/O error")

        with caplog.at_level(logging.ERROR):
            check = DuplicateDetector(failing_store).check("Acme", "INV-100", 5000)

        assert check.status is DuplicateStatus.CLEAN
        assert any(record.levelno == logging.ERROR for record in caplog.records)
