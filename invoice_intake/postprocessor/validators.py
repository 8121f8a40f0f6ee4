"""
Data Validators Module.

This module provides validation functions for:
    - Required field presence
    - Date fields
    - Amount fields and line items

Validators raise the matching ValidationError subclass on the first
problem found, before anything is persisted.

Author: ML Engineering Team
"""

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.exceptions import (
    ValidationError,
    MissingFieldError,
    InvalidDateError,
    InvalidAmountError
)
from .normalizers import DateNormalizer, AmountNormalizer, TextNormalizer
from .invoice_fields import InvoiceFields, LineItem, REQUIRED_FIELDS

# Initialize module logger
logger = get_logger(__name__)


class DateValidator:
    """
    Validates date fields.

    Example:
        >>> validator = DateValidator()
        >>> validator.validate("invoiceDate", "2026-01-15")
        datetime.date(2026, 1, 15)
        >>> validator.validate("invoiceDate", "not-a-date")
        Traceback (most recent call last):
        ...
        InvalidDateError: Invalid date format for field 'invoiceDate'
    """

    def __init__(self, normalizer: Optional[DateNormalizer] = None) -> None:
        self.normalizer = normalizer or DateNormalizer()

    def validate(self, field_name: str, value: Any) -> date:
        """
        Parse a date field.

        Raises:
            InvalidDateError: If the value is not a calendar date.
        """
        parsed = self.normalizer.to_date(value)
        if parsed is None:
            raise InvalidDateError(field_name, value)
        return parsed

    def is_due_after_invoice(self, invoice_date: date, due_date: date) -> Tuple[bool, str]:
        """
        Check if due date is on or after the invoice date.

        Returns:
            Tuple of (is_valid, message).
        """
        if due_date < invoice_date:
            return False, "Due date is before invoice date"
        return True, "Valid date relationship"


class AmountValidator:
    """
    Validates amount fields, producing non-negative integer cents.

    Example:
        >>> validator = AmountValidator()
        >>> validator.validate("amount", 5000)
        5000
        >>> validator.validate("amount", "$45.00", display=True)
        4500
    """

    def __init__(self, normalizer: Optional[AmountNormalizer] = None) -> None:
        self.normalizer = normalizer or AmountNormalizer()

    def validate(self, field_name: str, value: Any, display: bool = False) -> int:
        """
        Convert an amount to cents and check it.

        Args:
            field_name: Field name used in the error.
            value: Raw amount.
            display: Whether strings are major-unit display amounts.

        Raises:
            InvalidAmountError: If the amount is not a number or negative.
        """
        if display:
            cents = self.normalizer.cents_from_display(value)
        else:
            cents = self.normalizer.cents_from_model(value)

        if cents is None:
            reason = "not a number" if display else "not a whole number of cents"
            raise InvalidAmountError(field_name, value, reason)
        if cents < 0:
            raise InvalidAmountError(field_name, value, "amount cannot be negative")
        return cents


class FieldValidator:
    """
    Validates a raw invoice dictionary and builds InvoiceFields.

    Keys are the model's camelCase names; snake_case names are accepted
    as well. A field counts as missing when it is absent, null, or a
    blank string. ``lineItems`` may be an empty list.

    Example:
        >>> validator = FieldValidator()
        >>> fields = validator.validate(model_json)
        >>> fields.amount
        5000
    """

    def __init__(self) -> None:
        """Initialize the field validator."""
        self.text_normalizer = TextNormalizer()
        self.date_validator = DateValidator()
        self.amount_validator = AmountValidator()

        logger.debug(f"FieldValidator initialized (required: {[key for _, key in REQUIRED_FIELDS]})")

    @staticmethod
    def _lookup(data: Dict[str, Any], attribute: str, key: str) -> Any:
        if key in data:
            return data[key]
        return data.get(attribute)

    def check_required_fields(self, data: Dict[str, Any]) -> None:
        """
        Check that every required field is present.

        Raises:
            MissingFieldError: For the first missing field, by JSON key.
        """
        for attribute, key in REQUIRED_FIELDS:
            value = self._lookup(data, attribute, key)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise MissingFieldError(key)

    def validate(self, data: Dict[str, Any], display_amounts: bool = False) -> InvoiceFields:
        """
        Validate a raw invoice dictionary.

        Args:
            data: Raw fields, e.g. parsed model JSON or an edited record.
            display_amounts: Treat string amounts as display values
                             ("$45.00") instead of cents.

        Returns:
            InvoiceFields with parsed dates and cent amounts.

        Raises:
            MissingFieldError: If a required field is missing.
            InvalidDateError: If a date does not parse.
            InvalidAmountError: If an amount is negative or not a number.
            ValidationError: If ``lineItems`` is not a list of objects.
        """
        if not isinstance(data, dict):
            raise ValidationError("Invoice data must be an object", {"type": type(data).__name__})

        self.check_required_fields(data)

        def get(attribute: str, key: str) -> Any:
            return self._lookup(data, attribute, key)

        invoice_date = self.date_validator.validate("invoiceDate", get("invoice_date", "invoiceDate"))
        due_date = self.date_validator.validate("dueDate", get("due_date", "dueDate"))
        amount = self.amount_validator.validate("amount", get("amount", "amount"), display_amounts)
        line_items = self._validate_line_items(get("line_items", "lineItems"), display_amounts)

        return InvoiceFields(
            customer_name=self.text_normalizer.clean(get("customer_name", "customerName")),
            vendor_name=self.text_normalizer.clean(get("vendor_name", "vendorName")),
            invoice_number=self.text_normalizer.clean(get("invoice_number", "invoiceNumber")),
            invoice_date=invoice_date,
            due_date=due_date,
            amount=amount,
            line_items=line_items,
        )

    def _validate_line_items(self, items: Any, display_amounts: bool) -> List[LineItem]:
        if not isinstance(items, list):
            raise ValidationError(
                "Field 'lineItems' must be a list",
                {"field": "lineItems", "type": type(items).__name__}
            )

        line_items = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise ValidationError(
                    f"Line item {index} must be an object",
                    {"field": f"lineItems[{index}]"}
                )
            amount = self.amount_validator.validate(
                f"lineItems[{index}].amount", item.get("amount"), display_amounts
            )
            description = self.text_normalizer.clean(item.get("description")) or ""
            line_items.append(LineItem(description=description, amount=amount))

        return line_items

    def collect_warnings(self, fields: InvoiceFields) -> List[str]:
        """Soft checks that do not reject the invoice."""
        warnings = []

        valid, message = self.date_validator.is_due_after_invoice(fields.invoice_date, fields.due_date)
        if not valid:
            warnings.append(message)

        if fields.line_items:
            line_total = sum(item.amount for item in fields.line_items)
            if line_total != fields.amount:
                warnings.append(
                    f"Line items sum to {line_total} cents but invoice amount is {fields.amount} cents"
                )

        return warnings
