"""
Model Inference Module for the Invoice Intake System.

This module provides:
    - The OpenAI-backed InvoiceExtractor
    - The three-way interpretation of model answers

Author: ML Engineering Team
"""

from .extractor import InvoiceExtractor, LLMResponse, SYSTEM_PROMPT, build_user_message
from .extraction_result import (
    ParsedInvoice,
    NotAnInvoiceSignal,
    MalformedOutput,
    ModelOutput,
    clean_json_response,
    parse_model_output
)

__all__ = [
    'InvoiceExtractor',
    'LLMResponse',
    'SYSTEM_PROMPT',
    'build_user_message',
    'ParsedInvoice',
    'NotAnInvoiceSignal',
    'MalformedOutput',
    'ModelOutput',
    'clean_json_response',
    'parse_model_output',
]
