"""
Text Extractor Module.

This module turns an uploaded document into plain text, choosing the
extraction route from the MIME type:
    - application/pdf: embedded text layer, OCR of rendered pages when
      the layer is empty and OCR fallback is enabled
    - image/jpeg, image/png: image normalization followed by OCR

The backends are blocking, so they run in a worker thread and the event
loop stays free while a document is being read.

Author: ML Engineering Team
"""

import asyncio
from typing import Optional

from config import get_config
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.exceptions import (
    InvoiceExtractionError,
    UnsupportedFormatError,
    NoExtractableTextError,
    ExtractionFailedError
)

from .pdf_processor import PDFProcessor, PDF_MIME_TYPE
from .image_processor import ImageProcessor

# Initialize module logger
logger = get_logger(__name__)

IMAGE_MIME_TYPES = ("image/jpeg", "image/png")


class TextExtractor:
    """
    Extracts plain text from PDF and image uploads.

    The OCR engine is created on first use, so PDF-only workloads never
    need a Tesseract installation.

    Attributes:
        pdf_processor: PDFProcessor for text-layer extraction and rendering
        image_processor: ImageProcessor for OCR preparation
        ocr_fallback: Whether scanned PDFs are sent through OCR

    Example:
        >>> extractor = TextExtractor()
        >>> text = await extractor.extract_text(pdf_bytes, "application/pdf")
    """

    SUPPORTED_MIME_TYPES = (PDF_MIME_TYPE,) + IMAGE_MIME_TYPES

    def __init__(self, ocr_engine=None) -> None:
        """
        Initialize the text extractor.

        Args:
            ocr_engine: Optional OCR engine instance. If None, an OCREngine
                        is created lazily when OCR is first needed.
        """
        self.pdf_processor = PDFProcessor()
        self.image_processor = ImageProcessor()
        self.ocr_fallback = get_config("input.pdf.ocr_fallback", True)
        self._ocr_engine = ocr_engine

        logger.debug(f"TextExtractor initialized (ocr_fallback={self.ocr_fallback})")

    @property
    def ocr_engine(self):
        """Lazy-load the OCR engine."""
        if self._ocr_engine is None:
            from invoice_intake.ocr_engine import OCREngine
            self._ocr_engine = OCREngine()
        return self._ocr_engine

    async def extract_text(self, data: bytes, mime_type: str) -> str:
        """
        Extract plain text from document bytes.

        Args:
            data: Raw document bytes.
            mime_type: MIME type of the document.

        Returns:
            Non-empty extracted text.

        Raises:
            UnsupportedFormatError: If the MIME type has no extraction route.
            NoExtractableTextError: If the document yields no text.
            ExtractionFailedError: If a PDF or OCR backend fails.
        """
        if mime_type not in self.SUPPORTED_MIME_TYPES:
            raise UnsupportedFormatError(mime_type, list(self.SUPPORTED_MIME_TYPES))

        try:
            text = await asyncio.to_thread(self._extract_sync, data, mime_type)
        except InvoiceExtractionError:
            raise
        except Exception as e:
            logger.error(f"Text extraction failed for {mime_type}: {e}")
            raise ExtractionFailedError(mime_type, e) from e

        if not text or not text.strip():
            raise NoExtractableTextError(mime_type)

        logger.info(f"Extracted {len(text)} characters from {mime_type} document")
        return text

    def _extract_sync(self, data: bytes, mime_type: str) -> Optional[str]:
        if mime_type == PDF_MIME_TYPE:
            return self._extract_pdf(data)
        return self._extract_image(data)

    def _extract_pdf(self, data: bytes) -> str:
        text = self.pdf_processor.extract_text(data)
        if text.strip() or not self.ocr_fallback:
            return text

        logger.info("PDF has no text layer, running OCR on rendered pages")
        pages = self.pdf_processor.render_pages(data)
        return self.ocr_engine.extract_text_from_pages(pages)

    def _extract_image(self, data: bytes) -> str:
        image = self.image_processor.normalize(data)
        return self.ocr_engine.extract_text(image)
