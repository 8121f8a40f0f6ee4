"""
Main OCR Engine Module.

This module provides the OCREngine class, the single entry point for
turning images into text. The backend is chosen from configuration.

Usage:
    from invoice_intake.ocr_engine import OCREngine

    engine = OCREngine()
    text = engine.extract_text(image)

Author: ML Engineering Team
"""

from typing import Iterable, Optional
from PIL import Image

from config import get_config
from invoice_intake.utils.logger import get_logger
from .tesseract_backend import TesseractBackend

# Initialize module logger
logger = get_logger(__name__)


class OCREngine:
    """
    OCR engine providing a unified interface for text extraction.

    Supported Backends:
        - tesseract: Tesseract OCR (default)

    Attributes:
        backend_name: Name of the active OCR backend
        backend: The active OCR backend instance

    Example:
        >>> engine = OCREngine()
        >>> text = engine.extract_text(image)
        >>> text = engine.extract_text_from_pages([page1, page2])
    """

    SUPPORTED_BACKENDS = ['tesseract']

    def __init__(self, backend: Optional[str] = None) -> None:
        """
        Initialize the OCR engine.

        Args:
            backend: OCR backend to use. If None, uses configuration.
        """
        self.backend_name = backend or get_config("ocr.engine", "tesseract")

        if self.backend_name == "pytesseract":
            self.backend_name = "tesseract"

        if self.backend_name not in self.SUPPORTED_BACKENDS:
            logger.warning(
                f"Unknown backend '{self.backend_name}', falling back to tesseract"
            )
            self.backend_name = "tesseract"

        self.backend = TesseractBackend()

        logger.info(f"OCR Engine initialized with backend: {self.backend_name}")

    def extract_text(self, image: Image.Image) -> str:
        """Extract text from a single image."""
        return self.backend.extract_text(image)

    def extract_text_from_pages(self, images: Iterable[Image.Image]) -> str:
        """
        Extract text from several page images.

        Args:
            images: Page images in reading order.

        Returns:
            Page texts joined by blank lines; blank pages are dropped.
        """
        texts = [self.extract_text(image) for image in images]
        return "\n\n".join(text for text in texts if text.strip())
