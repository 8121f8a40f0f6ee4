"""
Main Post-Processor Module.

This module provides the PostProcessor class that turns raw invoice
dictionaries (model output or edited records) into validated
InvoiceFields.

Operations:
    - Check required fields
    - Normalize and validate dates and amounts
    - Clean text fields
    - Collect soft warnings
    - Log the outcome

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from invoice_intake.utils.logger import get_logger
from .invoice_fields import InvoiceFields
from .validators import FieldValidator

# Initialize module logger
logger = get_logger(__name__)


@dataclass
class ProcessedInvoice:
    """Validated fields plus any warnings raised on the way."""
    fields: InvoiceFields
    warnings: List[str] = field(default_factory=list)


class PostProcessor:
    """
    Post-processor for raw invoice data.

    Attributes:
        field_validator: FieldValidator instance

    Example:
        >>> processor = PostProcessor()
        >>> processed = processor.process(model_json)
        >>> processed.fields.invoice_date
        datetime.date(2024, 3, 1)
        >>> edited = processor.process(form_data, display_amounts=True)
    """

    def __init__(self) -> None:
        """Initialize the post-processor with its validator."""
        self.field_validator = FieldValidator()
        logger.debug("PostProcessor initialized")

    def process(self, data: Dict[str, Any], display_amounts: bool = False) -> ProcessedInvoice:
        """
        Validate raw invoice data.

        Args:
            data: Raw invoice dictionary.
            display_amounts: Treat string amounts as display values.

        Returns:
            ProcessedInvoice with validated fields and warnings.

        Raises:
            ValidationError: Subclass describing the first problem found.
        """
        fields = self.field_validator.validate(data, display_amounts=display_amounts)
        warnings = self.field_validator.collect_warnings(fields)

        for warning in warnings:
            logger.warning(f"Invoice {fields.invoice_number}: {warning}")

        logger.debug(
            f"Validated invoice {fields.invoice_number} from {fields.vendor_name} "
            f"({fields.amount} cents, {len(fields.line_items)} line items)"
        )
        return ProcessedInvoice(fields=fields, warnings=warnings)
