"""
Model Output Module.

The LLM answers with one of three things, modelled as separate classes
so that callers handle each case explicitly:

    ParsedInvoice       a JSON object with invoice fields
    NotAnInvoiceSignal  a JSON object of the form {"error": "..."}
    MalformedOutput     anything else (not JSON, not an object, empty)

Field-level checks (required fields, dates, amounts) are not done here;
they belong to the postprocessor.

Author: ML Engineering Team
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Union

from invoice_intake.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


@dataclass(frozen=True)
class ParsedInvoice:
    """Model output that looks like an invoice. Fields are still unvalidated."""
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NotAnInvoiceSignal:
    """The model classified the document as something other than an invoice."""
    message: str = "This document is not an invoice"


@dataclass(frozen=True)
class MalformedOutput:
    """Model output that could not be interpreted."""
    reason: str
    raw_output: str = ""


ModelOutput = Union[ParsedInvoice, NotAnInvoiceSignal, MalformedOutput]


def clean_json_response(content: str) -> str:
    """
    Remove markdown code fences around a JSON answer.

    Example:
        >>> clean_json_response('```json\\n{"a": 1}\\n```')
        '{"a": 1}'
    """
    content = content.strip()
    if content.startswith('```json'):
        content = content[7:]
    if content.startswith('```'):
        content = content[3:]
    if content.endswith('```'):
        content = content[:-3]
    return content.strip()


def parse_model_output(content: str) -> ModelOutput:
    """
    Classify a raw model answer.

    Args:
        content: Raw completion text.

    Returns:
        ParsedInvoice, NotAnInvoiceSignal or MalformedOutput.
    """
    if not content or not content.strip():
        return MalformedOutput("empty response", content or "")

    cleaned = clean_json_response(content)

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.debug(f"Model output is not JSON: {e}")
        return MalformedOutput(f"invalid JSON: {e.msg}", content)

    if not isinstance(payload, dict):
        return MalformedOutput(f"expected a JSON object, got {type(payload).__name__}", content)

    if payload.get("error"):
        return NotAnInvoiceSignal(str(payload["error"]))

    return ParsedInvoice(payload)
