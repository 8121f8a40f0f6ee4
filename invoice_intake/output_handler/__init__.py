"""
Output Handler Module for the Invoice Intake System.

This module provides:
    - The persisted Invoice record and its status lifecycle
    - SQLite storage with paginated listing
    - Duplicate and conflict detection

Author: ML Engineering Team
"""

from .invoice_record import Invoice, InvoiceStatus
from .database_handler import DatabaseHandler, InvoicePage, SORTABLE_COLUMNS
from .duplicate_detector import DuplicateDetector, DuplicateCheck, DuplicateStatus, fingerprint

__all__ = [
    'Invoice',
    'InvoiceStatus',
    'DatabaseHandler',
    'InvoicePage',
    'SORTABLE_COLUMNS',
    'DuplicateDetector',
    'DuplicateCheck',
    'DuplicateStatus',
    'fingerprint',
]
