"""
Tesseract OCR Backend.

This module provides OCR functionality using Tesseract (pytesseract).
It turns a normalized page image into plain text.

Requirements:
    - Tesseract OCR installed on the system
    - pytesseract Python package

Author: ML Engineering Team
"""

import time
from PIL import Image

from config import get_config
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.exceptions import ExtractionFailedError

# Initialize module logger
logger = get_logger(__name__)


class TesseractBackend:
    """
    Tesseract OCR backend implementation.

    Attributes:
        language: Tesseract language code (e.g., "eng")
        psm: Page Segmentation Mode (1-13)
        oem: OCR Engine Mode (0-3)
        extra_config: Additional Tesseract command-line options

    Example:
        >>> backend = TesseractBackend()
        >>> text = backend.extract_text(image)
    """

    name = "tesseract"

    def __init__(self) -> None:
        """Initialize the Tesseract backend with configuration."""
        self.language = get_config("ocr.tesseract.lang", "eng")
        self.psm = get_config("ocr.tesseract.psm", 3)
        self.oem = get_config("ocr.tesseract.oem", 3)
        self.extra_config = get_config("ocr.tesseract.config", "")

        self._check_dependencies()

        logger.debug(
            f"TesseractBackend initialized (lang={self.language}, "
            f"psm={self.psm}, oem={self.oem})"
        )

    def _check_dependencies(self) -> None:
        """
        Check if Tesseract is available.

        Raises:
            ExtractionFailedError: If pytesseract or the tesseract binary
                is missing.
        """
        try:
            import pytesseract
            self._pytesseract = pytesseract

            version = pytesseract.get_tesseract_version()
            logger.info(f"Tesseract version: {version}")

        except ImportError as e:
            raise ExtractionFailedError("image", e) from e
        except Exception as e:
            logger.error(f"Tesseract OCR not installed or not in PATH: {e}")
            raise ExtractionFailedError("image", e) from e

    def _build_config(self) -> str:
        config_parts = [
            f"--psm {self.psm}",
            f"--oem {self.oem}"
        ]

        if self.extra_config:
            config_parts.append(self.extra_config)

        return ' '.join(config_parts)

    def extract_text(self, image: Image.Image) -> str:
        """
        Run OCR on an image.

        Args:
            image: PIL Image to process.

        Returns:
            Recognized text with page breaks and trailing blanks
            removed (may be empty).
        """
        start_time = time.time()

        if image.mode != 'RGB':
            image = image.convert('RGB')

        config = self._build_config()
        logger.debug(f"Running Tesseract OCR (config: {config})")

        raw = self._pytesseract.image_to_string(
            image,
            lang=self.language,
            config=config
        )
        text = self._clean_text(raw)

        logger.info(
            f"OCR completed: {len(text)} characters "
            f"({time.time() - start_time:.2f}s)"
        )
        return text

    @staticmethod
    def _clean_text(raw: str) -> str:
        # Tesseract terminates every page with a form feed
        lines = [line.rstrip() for line in raw.replace('\x0c', '\n').splitlines()]
        return '\n'.join(lines).strip()
