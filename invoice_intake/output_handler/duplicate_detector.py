"""
Duplicate Detector Module.

An invoice is an exact duplicate of a stored one when vendor name,
invoice number and amount all match. The MD5 fingerprint of those three
values is stored with every invoice and used as the fast lookup key;
rows without a fingerprint are still found by a direct three-field
match.

Same vendor and number with a different amount is not a duplicate. It is
reported as a conflict so that a human can look at both invoices.

Author: ML Engineering Team
"""

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.exceptions import DatabaseError
from .database_handler import DatabaseHandler

# Initialize module logger
logger = get_logger(__name__)


def fingerprint(vendor_name: str, invoice_number: str, amount: int) -> str:
    """
    Compute the duplicate checksum of an invoice.

    Args:
        vendor_name: Vendor name as stored.
        invoice_number: Invoice number as stored.
        amount: Amount in cents.

    Returns:
        MD5 hex digest of ``"vendor|number|amount"``.

    Example:
        >>> fingerprint("Acme", "INV-100", 5000) == fingerprint("Acme", "INV-100", 5000)
        True
    """
    payload = f"{vendor_name}|{invoice_number}|{int(amount)}"
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


class DuplicateStatus(str, Enum):
    CLEAN = "clean"
    DUPLICATE = "duplicate"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class DuplicateCheck:
    """
    Outcome of a duplicate check.

    Attributes:
        status: clean, duplicate or conflict
        checksum: Fingerprint of the checked invoice
        existing_id: Id of the matching stored invoice, if any
        existing_amount: Amount of the matching stored invoice, if any
    """
    status: DuplicateStatus
    checksum: str
    existing_id: Optional[str] = None
    existing_amount: Optional[int] = None

    @property
    def is_duplicate(self) -> bool:
        return self.status is DuplicateStatus.DUPLICATE


class DuplicateDetector:
    """
    Checks new invoices against the store.

    Lookup order:
        1. Stored checksum equal to the new fingerprint
        2. Exact vendor, number and amount match
        3. Same vendor and number, different amount (conflict)

    A failing store never blocks intake: the check logs the error and
    reports the invoice as clean. The unique checksum index still stops
    a real duplicate at insert time.

    Example:
        >>> detector = DuplicateDetector(store)
        >>> detector.check("Acme", "INV-100", 5000).status
        <DuplicateStatus.CLEAN: 'clean'>
    """

    def __init__(self, store: DatabaseHandler) -> None:
        self.store = store

    def check(self, vendor_name: str, invoice_number: str, amount: int) -> DuplicateCheck:
        """
        Classify an invoice as clean, duplicate or conflicting.

        Args:
            vendor_name: Vendor name.
            invoice_number: Invoice number.
            amount: Amount in cents.

        Returns:
            DuplicateCheck describing the outcome.
        """
        checksum = fingerprint(vendor_name, invoice_number, amount)

        try:
            existing = self.store.find_by_checksum(checksum)
            if existing is None:
                existing = self.store.find_exact(vendor_name, invoice_number, amount)

            if existing is not None:
                logger.info(
                    f"Duplicate of {existing.id}: {invoice_number} from {vendor_name}"
                )
                return DuplicateCheck(
                    DuplicateStatus.DUPLICATE, checksum, existing.id, existing.amount
                )

            same_number = self.store.find_by_vendor_and_number(vendor_name, invoice_number)
        except DatabaseError as e:
            logger.error(f"Duplicate check failed, accepting invoice {invoice_number}: {e}")
            return DuplicateCheck(DuplicateStatus.CLEAN, checksum)

        if same_number:
            other = same_number[0]
            logger.warning(
                f"Invoice {invoice_number} from {vendor_name} conflicts with {other.id} "
                f"(amount {amount} vs {other.amount})"
            )
            return DuplicateCheck(DuplicateStatus.CONFLICT, checksum, other.id, other.amount)

        return DuplicateCheck(DuplicateStatus.CLEAN, checksum)

    def is_duplicate(self, vendor_name: str, invoice_number: str, amount: int) -> bool:
        """True only for an exact duplicate."""
        return self.check(vendor_name, invoice_number, amount).is_duplicate
