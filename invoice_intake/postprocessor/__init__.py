"""
Post-Processing Module for the Invoice Intake System.

This module provides functionality for:
    - Date normalization (to datetime.date)
    - Amount normalization (to integer cents)
    - Required-field, date and amount validation
    - Soft consistency warnings

Author: ML Engineering Team
"""

from .invoice_fields import InvoiceFields, LineItem, REQUIRED_FIELDS
from .normalizers import DateNormalizer, AmountNormalizer, TextNormalizer
from .validators import FieldValidator, DateValidator, AmountValidator
from .processor import PostProcessor, ProcessedInvoice

__all__ = [
    'InvoiceFields',
    'LineItem',
    'REQUIRED_FIELDS',
    'DateNormalizer',
    'AmountNormalizer',
    'TextNormalizer',
    'FieldValidator',
    'DateValidator',
    'AmountValidator',
    'PostProcessor',
    'ProcessedInvoice',
]
