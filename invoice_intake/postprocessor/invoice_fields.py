"""
Invoice Fields Module.

Validated business fields of an invoice, independent of how they are
stored. The pipeline builds these from model output or from an edited
record and then wraps them into a persisted Invoice.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List


# (attribute name, JSON key) in the order fields are checked
REQUIRED_FIELDS = [
    ("customer_name", "customerName"),
    ("vendor_name", "vendorName"),
    ("invoice_number", "invoiceNumber"),
    ("invoice_date", "invoiceDate"),
    ("due_date", "dueDate"),
    ("amount", "amount"),
    ("line_items", "lineItems"),
]


@dataclass(frozen=True)
class LineItem:
    """One invoice line. ``amount`` is in cents."""
    description: str
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {"description": self.description, "amount": self.amount}


@dataclass
class InvoiceFields:
    """
    Validated invoice fields.

    Attributes:
        customer_name: Billed party
        vendor_name: Issuing party
        invoice_number: Vendor's invoice number
        invoice_date: Issue date
        due_date: Payment due date
        amount: Total in cents
        line_items: Invoice lines in document order
    """
    customer_name: str
    vendor_name: str
    invoice_number: str
    invoice_date: date
    due_date: date
    amount: int
    line_items: List[LineItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the JSON keys the model uses."""
        return {
            "customerName": self.customer_name,
            "vendorName": self.vendor_name,
            "invoiceNumber": self.invoice_number,
            "invoiceDate": self.invoice_date.isoformat(),
            "dueDate": self.due_date.isoformat(),
            "amount": self.amount,
            "lineItems": [item.to_dict() for item in self.line_items],
        }
