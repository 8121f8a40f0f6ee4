"""
Invoice Record Module.

This module defines the persisted Invoice: validated business fields
plus the bookkeeping the pipeline attaches (identity, status, duplicate
checksum, token usage and cost).

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from invoice_intake.accounting.accountant import UsageRecord
from invoice_intake.accounting.token_counter import TokenUsage
from invoice_intake.postprocessor.invoice_fields import InvoiceFields, LineItem
from invoice_intake.utils.exceptions import InvalidStatusTransitionError


class InvoiceStatus(str, Enum):
    """Lifecycle of a stored invoice."""
    PROCESSED = "processed"
    EDITED = "edited"


# Allowed status changes; edited invoices may be edited again
ALLOWED_TRANSITIONS = {
    InvoiceStatus.PROCESSED: {InvoiceStatus.PROCESSED, InvoiceStatus.EDITED},
    InvoiceStatus.EDITED: {InvoiceStatus.EDITED},
}


@dataclass
class Invoice:
    """
    A stored invoice.

    Attributes:
        id: Invoice identifier, never changes
        document_id: Reference to the uploaded document
        customer_name: Billed party
        vendor_name: Issuing party
        invoice_number: Vendor's invoice number
        invoice_date: Issue date
        due_date: Payment due date
        amount: Total in cents
        line_items: Invoice lines in document order
        status: processed, or edited after a manual correction
        duplicate_checksum: Fingerprint of vendor, number and amount
        token_usage: Tokens spent extracting the invoice
        processing_cost: Exact cost of the extraction
        used_cache: Whether the model answer came from the cache
        tokens_saved: Tokens the cache hit avoided
        conflict_with: Id of a stored invoice with the same vendor and
                       number but a different amount
        created_at: Creation time (UTC)
        updated_at: Last modification time (UTC)
    """
    id: str
    document_id: str
    customer_name: str
    vendor_name: str
    invoice_number: str
    invoice_date: date
    due_date: date
    amount: int
    line_items: List[LineItem] = field(default_factory=list)
    status: InvoiceStatus = InvoiceStatus.PROCESSED
    duplicate_checksum: Optional[str] = None
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    processing_cost: Decimal = Decimal("0")
    used_cache: bool = False
    tokens_saved: int = 0
    conflict_with: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_fields(cls, invoice_id: str, document_id: str, fields: InvoiceFields, **extra) -> "Invoice":
        """Build a new invoice from validated fields."""
        return cls(
            id=invoice_id,
            document_id=document_id,
            customer_name=fields.customer_name,
            vendor_name=fields.vendor_name,
            invoice_number=fields.invoice_number,
            invoice_date=fields.invoice_date,
            due_date=fields.due_date,
            amount=fields.amount,
            line_items=list(fields.line_items),
            **extra
        )

    @property
    def fields(self) -> InvoiceFields:
        return InvoiceFields(
            customer_name=self.customer_name,
            vendor_name=self.vendor_name,
            invoice_number=self.invoice_number,
            invoice_date=self.invoice_date,
            due_date=self.due_date,
            amount=self.amount,
            line_items=list(self.line_items),
        )

    def transition_to(self, status: InvoiceStatus) -> None:
        """
        Change the status.

        Raises:
            InvalidStatusTransitionError: If the change is not allowed.
        """
        status = InvoiceStatus(status)
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStatusTransitionError(self.status.value, status.value)
        self.status = status

    def apply_edit(self, fields: InvoiceFields, checksum: str, edited_at: datetime) -> None:
        """
        Replace the business fields with an edited version.

        Token usage, cost and cache information are left as they were.
        """
        self.transition_to(InvoiceStatus.EDITED)
        self.customer_name = fields.customer_name
        self.vendor_name = fields.vendor_name
        self.invoice_number = fields.invoice_number
        self.invoice_date = fields.invoice_date
        self.due_date = fields.due_date
        self.amount = fields.amount
        self.line_items = list(fields.line_items)
        self.duplicate_checksum = checksum
        self.updated_at = edited_at

    def usage_record(self) -> UsageRecord:
        return UsageRecord(
            invoice_id=self.id,
            usage=self.token_usage,
            cost=self.processing_cost,
            tokens_saved=self.tokens_saved,
            used_cache=self.used_cache,
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation. Money stays exact as strings."""
        return {
            "id": self.id,
            "documentId": self.document_id,
            "customerName": self.customer_name,
            "vendorName": self.vendor_name,
            "invoiceNumber": self.invoice_number,
            "invoiceDate": self.invoice_date.isoformat(),
            "dueDate": self.due_date.isoformat(),
            "amount": self.amount,
            "lineItems": [item.to_dict() for item in self.line_items],
            "status": self.status.value,
            "duplicateChecksum": self.duplicate_checksum,
            "tokenUsage": self.token_usage.to_dict(),
            "processingCost": str(self.processing_cost),
            "usedCache": self.used_cache,
            "tokensSaved": self.tokens_saved,
            "conflictWith": self.conflict_with,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
