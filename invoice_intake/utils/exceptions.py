"""
Custom Exceptions Module.

Every way an invoice can be rejected has its own exception class so that
callers can react differently (ask for a clearer scan, show the existing
invoice, retry the request, call an operator). Each class carries a stable
``reason`` code that the CLI prints and tests assert on.

Exception Hierarchy:
    InvoiceExtractionError (base)
    ├── InputError
    │   └── InvalidUploadError
    ├── ExtractionError
    │   ├── UnsupportedFormatError
    │   ├── NoExtractableTextError
    │   └── ExtractionFailedError
    ├── ModelError
    │   ├── NotAnInvoiceError
    │   ├── MalformedModelOutputError
    │   ├── LLMCallError
    │   ├── UnauthorizedError
    │   └── UnconfiguredError
    ├── ValidationError
    │   ├── MissingFieldError
    │   ├── InvalidDateError
    │   └── InvalidAmountError
    ├── DuplicateInvoiceError
    ├── ConfigurationError
    └── OutputError
        ├── DatabaseError
        ├── InvoiceNotFoundError
        └── InvalidStatusTransitionError
"""

from typing import Any, Optional


class InvoiceExtractionError(Exception):
    """
    Base exception for all invoice intake errors.

    Attributes:
        message: Human-readable error message.
        details: Dictionary with additional error context.
        reason: Stable machine-readable rejection code.
        stage: Pipeline stage the error was raised in, filled in by the
               pipeline when the error crosses it.
    """

    reason = "error"
    retryable = False

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        self.stage: Optional[str] = None
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict:
        """Serialize the rejection for JSON output."""
        return {
            'reason': self.reason,
            'message': self.message,
            'stage': self.stage,
            'retryable': self.retryable,
            'details': self.details,
        }


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(InvoiceExtractionError):
    """Base exception for upload handling errors."""
    reason = "input_error"


class InvalidUploadError(InputError):
    """
    Raised when an upload has a disallowed MIME type, is empty, or
    exceeds the size cap. Client-fixable, never retried.

    Example:
        >>> raise InvalidUploadError("File too large", {"size": 20_000_000})
    """
    reason = "invalid_upload"


# =============================================================================
# TEXT EXTRACTION ERRORS
# =============================================================================

class ExtractionError(InvoiceExtractionError):
    """Base exception for text extraction errors."""
    reason = "extraction_error"


class UnsupportedFormatError(ExtractionError):
    """Raised when the text extractor has no backend for a MIME type."""
    reason = "unsupported_format"

    def __init__(self, mime_type: str, supported_types: list):
        message = f"Unsupported document format: '{mime_type}'"
        details = {"mime_type": mime_type, "supported_types": supported_types}
        super().__init__(message, details)


class NoExtractableTextError(ExtractionError):
    """Raised when a document yields no text. A clearer scan may help."""
    reason = "no_extractable_text"
    retryable = True

    def __init__(self, mime_type: str = None):
        message = "No text could be extracted from the file"
        super().__init__(message, {"mime_type": mime_type})


class ExtractionFailedError(ExtractionError):
    """Raised when a PDF or OCR backend fails. Wraps the original cause."""
    reason = "extraction_failed"
    retryable = True

    def __init__(self, mime_type: str, cause: BaseException = None):
        message = "Failed to extract text from file"
        details = {
            "mime_type": mime_type,
            "cause": f"{type(cause).__name__}: {cause}" if cause else None,
        }
        super().__init__(message, details)
        self.cause = cause


# =============================================================================
# MODEL ERRORS
# =============================================================================

class ModelError(InvoiceExtractionError):
    """Base exception for LLM related errors."""
    reason = "model_error"


class NotAnInvoiceError(ModelError):
    """Raised when the model classifies the document as something else."""
    reason = "not_an_invoice"

    def __init__(self, message: str = "This document is not an invoice"):
        super().__init__(message)


class MalformedModelOutputError(ModelError):
    """
    Raised when the model response is not the expected JSON object.
    Safe to retry: malformed responses are never cached.
    """
    reason = "malformed_model_output"
    retryable = True

    def __init__(self, reason: str, raw_output: str = None):
        message = "Model response could not be parsed"
        details = {"reason": reason}
        if raw_output is not None:
            details["raw_output"] = raw_output[:500]
        super().__init__(message, details)


class LLMCallError(ModelError):
    """Raised when the LLM call itself fails (timeout, API error)."""
    reason = "llm_call_failed"
    retryable = True

    def __init__(self, model: str, cause: str = None):
        message = f"LLM call failed for model: {model}"
        super().__init__(message, {"model": model, "cause": cause})


class UnauthorizedError(ModelError):
    """Raised when the LLM provider rejects the configured credentials."""
    reason = "unauthorized"

    def __init__(self, provider: str, cause: str = None):
        message = f"Credentials rejected by provider: {provider}"
        super().__init__(message, {"provider": provider, "cause": cause})


class UnconfiguredError(ModelError):
    """Raised when LLM credentials are missing. Needs an operator."""
    reason = "unconfigured"

    def __init__(self, setting: str):
        message = f"LLM is not configured: {setting} is not set"
        super().__init__(message, {"setting": setting})


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class ValidationError(InvoiceExtractionError):
    """Base exception for structured-result validation errors."""
    reason = "validation_error"


class MissingFieldError(ValidationError):
    """Raised when a required invoice field is absent or blank."""
    reason = "missing_field"

    def __init__(self, field: str):
        message = f"Missing required field: {field}"
        super().__init__(message, {"field": field})
        self.field = field


class InvalidDateError(ValidationError):
    """Raised when a date field does not parse to a calendar date."""
    reason = "invalid_date"

    def __init__(self, field: str, value: Any):
        message = f"Invalid date format for field '{field}'"
        super().__init__(message, {"field": field, "value": value})
        self.field = field


class InvalidAmountError(ValidationError):
    """Raised when an amount is negative or not a number."""
    reason = "invalid_amount"

    def __init__(self, field: str, value: Any, reason: str = None):
        message = f"Invalid amount for field '{field}'"
        super().__init__(message, {"field": field, "value": value, "reason": reason})
        self.field = field


# =============================================================================
# BUSINESS RULE ERRORS
# =============================================================================

class DuplicateInvoiceError(InvoiceExtractionError):
    """
    Raised when an invoice with the same vendor, number and amount
    already exists. Terminal: resubmitting will not help.
    """
    reason = "duplicate_invoice"

    def __init__(
        self,
        vendor_name: str,
        invoice_number: str,
        amount: int,
        existing_id: Optional[str] = None
    ):
        message = (
            f"Duplicate invoice detected: Invoice number {invoice_number} from "
            f"vendor \"{vendor_name}\" with amount {amount / 100:.2f} already exists"
        )
        details = {
            "vendor_name": vendor_name,
            "invoice_number": invoice_number,
            "amount": amount,
            "existing_id": existing_id,
        }
        super().__init__(message, details)
        self.existing_id = existing_id


class ConfigurationError(InvoiceExtractionError):
    """Raised when settings.yaml holds an invalid value."""
    reason = "configuration_error"

    def __init__(self, key: str, reason: str = None):
        message = f"Invalid configuration value: {key}"
        super().__init__(message, {"key": key, "reason": reason})


# =============================================================================
# OUTPUT ERRORS
# =============================================================================

class OutputError(InvoiceExtractionError):
    """Base exception for invoice store errors."""
    reason = "output_error"


class DatabaseError(OutputError):
    """Raised when database operations fail."""
    reason = "database_error"

    def __init__(self, operation: str, reason: str = None):
        message = f"Database operation failed: {operation}"
        super().__init__(message, {"operation": operation, "reason": reason})


class InvoiceNotFoundError(OutputError):
    """Raised when an invoice id does not exist."""
    reason = "not_found"

    def __init__(self, invoice_id: str):
        super().__init__("Invoice not found", {"invoice_id": invoice_id})


class InvalidStatusTransitionError(OutputError):
    """Raised on a lifecycle change other than processed -> edited."""
    reason = "invalid_status_transition"

    def __init__(self, current: str, requested: str):
        message = f"Cannot change invoice status from '{current}' to '{requested}'"
        super().__init__(message, {"current": current, "requested": requested})


__all__ = [
    'InvoiceExtractionError',
    'InputError',
    'InvalidUploadError',
    'ExtractionError',
    'UnsupportedFormatError',
    'NoExtractableTextError',
    'ExtractionFailedError',
    'ModelError',
    'NotAnInvoiceError',
    'MalformedModelOutputError',
    'LLMCallError',
    'UnauthorizedError',
    'UnconfiguredError',
    'ValidationError',
    'MissingFieldError',
    'InvalidDateError',
    'InvalidAmountError',
    'DuplicateInvoiceError',
    'ConfigurationError',
    'OutputError',
    'DatabaseError',
    'InvoiceNotFoundError',
    'InvalidStatusTransitionError',
]
