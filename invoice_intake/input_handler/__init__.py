"""
Input Handler Module for the Invoice Intake System.

This module provides functionality for:
    - Validating uploads (MIME type, size, emptiness)
    - Extracting the text layer of digital PDFs
    - Rendering scanned PDFs for OCR
    - Normalizing images for OCR processing

Supported formats:
    - PDF (digital and scanned)
    - Images: JPEG, PNG

Author: ML Engineering Team
"""

from .handler import InputHandler, UploadedFile
from .pdf_processor import PDFProcessor
from .image_processor import ImageProcessor
from .text_extractor import TextExtractor

__all__ = [
    'InputHandler',
    'UploadedFile',
    'PDFProcessor',
    'ImageProcessor',
    'TextExtractor',
]
