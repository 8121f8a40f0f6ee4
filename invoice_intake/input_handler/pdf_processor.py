"""
PDF Processor Module.

This module turns uploaded PDF bytes into text:
    - Digital PDF text extraction (pdfplumber, PyMuPDF as fallback)
    - Text-layer detection for scanned PDFs
    - Page rasterization so scanned PDFs can be sent through OCR

Author: ML Engineering Team
"""

import io
from typing import List
from PIL import Image

from config import get_config
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.exceptions import ExtractionFailedError

# Initialize module logger
logger = get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"


class PDFProcessor:
    """
    Processor for PDF uploads.

    Reads the embedded text layer of digital PDFs and renders pages of
    scanned PDFs to images for the OCR engine. Works entirely in memory
    on the uploaded bytes.

    Attributes:
        dpi: Resolution used when rasterizing pages
        max_pages: Maximum number of pages read from a document

    Example:
        >>> processor = PDFProcessor()
        >>> text = processor.extract_text(pdf_bytes)
        >>> if not text.strip():
        ...     pages = processor.render_pages(pdf_bytes)
    """

    def __init__(self) -> None:
        """Initialize the PDF processor with configuration."""
        self.dpi = get_config("input.pdf.dpi", 300)
        self.max_pages = get_config("input.pdf.max_pages", 10)

        self._check_dependencies()

        logger.debug(f"PDFProcessor initialized (DPI={self.dpi}, max_pages={self.max_pages})")

    def _check_dependencies(self) -> None:
        """Detect which of the PDF libraries are importable."""
        try:
            import pdfplumber
            self._pdfplumber = pdfplumber
        except ImportError:
            logger.debug("pdfplumber not available. Using PyMuPDF for text extraction.")
            self._pdfplumber = None

        try:
            import fitz  # PyMuPDF
            self._pymupdf = fitz
        except ImportError:
            logger.debug("PyMuPDF not available.")
            self._pymupdf = None

        try:
            import pdf2image
            self._pdf2image = pdf2image
        except ImportError:
            logger.debug("pdf2image not available. Page rendering limited to PyMuPDF.")
            self._pdf2image = None

    def extract_text(self, data: bytes) -> str:
        """
        Extract the embedded text of a PDF.

        Args:
            data: Raw PDF bytes.

        Returns:
            Concatenated page text, pages separated by blank lines.
            Empty string for PDFs without a text layer.

        Raises:
            ExtractionFailedError: If no PDF library is installed or
                the document cannot be parsed.
        """
        if self._pdfplumber is not None:
            return self._extract_with_pdfplumber(data)
        if self._pymupdf is not None:
            return self._extract_with_pymupdf(data)

        raise ExtractionFailedError(
            PDF_MIME_TYPE,
            ImportError("No PDF library available. Install pdfplumber or PyMuPDF.")
        )

    def _extract_with_pdfplumber(self, data: bytes) -> str:
        logger.debug("Using pdfplumber for PDF text extraction")
        with self._pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = pdf.pages[:self.max_pages]
            if len(pdf.pages) > self.max_pages:
                logger.warning(
                    f"PDF has {len(pdf.pages)} pages, limiting to {self.max_pages}"
                )
            texts = [page.extract_text() or "" for page in pages]

        return "\n\n".join(text for text in texts if text.strip())

    def _extract_with_pymupdf(self, data: bytes) -> str:
        logger.debug("Using PyMuPDF for PDF text extraction")
        doc = self._pymupdf.open(stream=data, filetype="pdf")
        try:
            texts = []
            for page_num in range(min(len(doc), self.max_pages)):
                texts.append(doc.load_page(page_num).get_text() or "")
        finally:
            doc.close()

        return "\n\n".join(text for text in texts if text.strip())

    def render_pages(self, data: bytes) -> List[Image.Image]:
        """
        Render PDF pages to RGB images for OCR.

        Args:
            data: Raw PDF bytes.

        Returns:
            List of PIL Images, one per page (at most max_pages).

        Raises:
            ExtractionFailedError: If no rendering library is installed.
        """
        if self._pymupdf is not None:
            images = self._render_with_pymupdf(data)
        elif self._pdf2image is not None:
            images = self._render_with_pdf2image(data)
        else:
            raise ExtractionFailedError(
                PDF_MIME_TYPE,
                ImportError("No PDF rendering library available. Install PyMuPDF or pdf2image.")
            )

        logger.info(f"Rendered PDF to {len(images)} image(s) for OCR")
        return images

    def _render_with_pymupdf(self, data: bytes) -> List[Image.Image]:
        logger.debug("Using PyMuPDF for PDF rendering")
        images = []
        doc = self._pymupdf.open(stream=data, filetype="pdf")
        try:
            # Default PDF resolution is 72 DPI
            zoom = self.dpi / 72.0
            matrix = self._pymupdf.Matrix(zoom, zoom)

            for page_num in range(min(len(doc), self.max_pages)):
                pix = doc.load_page(page_num).get_pixmap(matrix=matrix)
                image = Image.open(io.BytesIO(pix.tobytes("png")))
                if image.mode != 'RGB':
                    image = image.convert('RGB')
                images.append(image)
        finally:
            doc.close()

        return images

    def _render_with_pdf2image(self, data: bytes) -> List[Image.Image]:
        logger.debug("Using pdf2image for PDF rendering")
        images = self._pdf2image.convert_from_bytes(
            data,
            dpi=self.dpi,
            first_page=1,
            last_page=self.max_pages,
            fmt='png'
        )
        return [img.convert('RGB') if img.mode != 'RGB' else img for img in images]
