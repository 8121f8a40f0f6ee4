"""
OCR Engine Module for the Invoice Intake System.

This module turns normalized page images into plain text:
    - Backend selection from configuration
    - Multi-page text assembly

Supported backends:
    - Tesseract (pytesseract)

Author: ML Engineering Team
"""

from .engine import OCREngine
from .tesseract_backend import TesseractBackend

__all__ = ['OCREngine', 'TesseractBackend']
