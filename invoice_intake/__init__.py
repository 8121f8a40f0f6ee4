"""
Invoice Intake System - Source Package.

This package contains all core modules for turning uploaded invoice
documents into validated, de-duplicated, cost-accounted invoice records.
Each module has a single responsibility.

Modules:
    - input_handler: Upload validation, PDF and image text extraction
    - ocr_engine: Tesseract OCR
    - caching: Shared key-value backend and prompt cache
    - accounting: Token estimates, pricing and usage statistics
    - model_inference: LLM client and model answer interpretation
    - postprocessor: Field normalization and validation
    - output_handler: Invoice store and duplicate detection
    - pipeline: End-to-end orchestration

Architecture:
    Upload → Text → Cache/LLM → Validation → Duplicate Check → Cost → Store
"""

__version__ = "1.0.0"
__author__ = "ML Engineering Team"

__all__ = [
    'input_handler',
    'ocr_engine',
    'caching',
    'accounting',
    'model_inference',
    'postprocessor',
    'output_handler',
    'pipeline',
    'utils'
]
