"""
Tests for upload validation, image normalization and text extraction.

OCR is replaced by a Mock; PDFs are generated in memory with PyMuPDF.
"""

import io
from unittest.mock import Mock

import fitz
import pytest
from PIL import Image

from invoice_intake.input_handler import ImageProcessor, InputHandler, TextExtractor, UploadedFile
from invoice_intake.ocr_engine import OCREngine
from invoice_intake.utils.exceptions import (
    ExtractionFailedError,
    InvalidUploadError,
    NoExtractableTextError,
    UnsupportedFormatError
)


def make_pdf(text=None):
    doc = fitz.open()
    page = doc.new_page()
    if text:
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def make_png(mode="RGB", size=(40, 20), color=(255, 0, 0)):
    if mode == "RGBA":
        color = color + (0,)
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class TestInputHandler:

    def setup_method(self):
        self.handler = InputHandler()

    @pytest.mark.parametrize("content_type", ["application/pdf", "image/jpeg", "image/png"])
    def test_allowed_types_accepted(self, content_type):
        upload = UploadedFile("doc", content_type, b"data")
        assert self.handler.validate(upload) is upload

    @pytest.mark.parametrize("content_type", ["image/gif", "text/plain", "application/octet-stream"])
    def test_other_types_rejected(self, content_type):
        with pytest.raises(InvalidUploadError, match="Only PDF, JPEG, and PNG"):
            self.handler.validate(UploadedFile("doc", content_type, b"data"))

    def test_empty_file_rejected(self):
        with pytest.raises(InvalidUploadError, match="empty"):
            self.handler.validate(UploadedFile("doc.pdf", "application/pdf", b""))

    def test_size_limit_is_inclusive(self):
        handler = InputHandler(max_upload_bytes=10)

        handler.validate(UploadedFile("doc.pdf", "application/pdf", b"x" * 10))
        with pytest.raises(InvalidUploadError, match="exceeds"):
            handler.validate(UploadedFile("doc.pdf", "application/pdf", b"x" * 11))

    def test_limits_from_configuration(self):
        assert self.handler.max_upload_bytes == 10 * 1024 * 1024
        assert "application/pdf" in self.handler.allowed_mime_types


class TestUploadedFile:

    def test_from_path_guesses_type(self, tmp_path):
        path = tmp_path / "scan.png"
        path.write_bytes(b"\x89PNG")

        upload = UploadedFile.from_path(path)

        assert upload.filename == "scan.png"
        assert upload.content_type == "image/png"
        assert upload.size == 4

    def test_unknown_extension(self, tmp_path):
        path = tmp_path / "invoice.unknownext"
        path.write_bytes(b"data")

        assert UploadedFile.from_path(path).content_type == "application/octet-stream"

    def test_repr_hides_bytes(self):
        upload = UploadedFile("a.pdf", "application/pdf", b"secret-bytes")
        assert "secret-bytes" not in repr(upload)


class TestImageProcessor:

    def test_transparent_png_flattened_to_white(self):
        image = ImageProcessor().normalize(make_png(mode="RGBA"))

        assert image.mode == "RGB"
        assert image.getpixel((0, 0)) == (255, 255, 255)

    def test_large_image_downscaled(self):
        processor = ImageProcessor()
        processor.max_width, processor.max_height = 100, 100

        image = processor.normalize(make_png(size=(400, 200)))

        assert image.size == (100, 50)

    def test_garbage_bytes_fail(self):
        with pytest.raises(ExtractionFailedError):
            ImageProcessor().normalize(b"definitely not an image")


class TestTextExtractor:

    def setup_method(self):
        self.ocr = Mock()
        self.ocr.extract_text.return_value = "OCR INVOICE TEXT"
        self.ocr.extract_text_from_pages.return_value = "OCR PAGE TEXT"
        self.extractor = TextExtractor(ocr_engine=self.ocr)

    @pytest.mark.asyncio
    async def test_unsupported_type(self):
        with pytest.raises(UnsupportedFormatError):
            await self.extractor.extract_text(b"GIF89a", "image/gif")

    @pytest.mark.asyncio
    async def test_pdf_text_layer(self):
        text = await self.extractor.extract_text(make_pdf("INVOICE INV-100"), "application/pdf")

        assert "INV-100" in text
        self.ocr.extract_text_from_pages.assert_not_called()

    @pytest.mark.asyncio
    async def test_scanned_pdf_falls_back_to_ocr(self):
        text = await self.extractor.extract_text(make_pdf(), "application/pdf")

        assert text == "OCR PAGE TEXT"
        pages = self.ocr.extract_text_from_pages.call_args.args[0]
        assert len(pages) == 1

    @pytest.mark.asyncio
    async def test_scanned_pdf_without_fallback_has_no_text(self):
        self.extractor.ocr_fallback = False

        with pytest.raises(NoExtractableTextError):
            await self.extractor.extract_text(make_pdf(), "application/pdf")

    @pytest.mark.asyncio
    async def test_image_goes_through_ocr(self):
        text = await self.extractor.extract_text(make_png(), "image/png")

        assert text == "OCR INVOICE TEXT"
        image = self.ocr.extract_text.call_args.args[0]
        assert image.mode == "RGB"

    @pytest.mark.asyncio
    async def test_blank_ocr_result(self):
        self.ocr.extract_text.return_value = "  \n "

        with pytest.raises(NoExtractableTextError):
            await self.extractor.extract_text(make_png(), "image/png")

    @pytest.mark.asyncio
    async def test_backend_failure_is_wrapped(self):
        self.ocr.extract_text.side_effect = RuntimeError("tesseract crashed")

        with pytest.raises(ExtractionFailedError) as excinfo:
            await self.extractor.extract_text(make_png(), "image/png")

        assert "RuntimeError" in excinfo.value.details["cause"]


class TestOCREngine:

    @pytest.fixture
    def tesseract(self, monkeypatch):
        import pytesseract
        monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
        image_to_string = Mock(side_effect=["page one\n\x0c", "   \x0c", "page three  \n\x0c"])
        monkeypatch.setattr(pytesseract, "image_to_string", image_to_string)
        return image_to_string

    def test_pages_joined_and_blank_pages_dropped(self, tesseract):
        pages = [Image.new("RGB", (10, 10)) for _ in range(3)]

        text = OCREngine().extract_text_from_pages(pages)

        assert text == "page one\n\npage three"
        assert tesseract.call_args.kwargs["config"] == "--psm 3 --oem 3"

    def test_unknown_backend_falls_back(self, tesseract):
        assert OCREngine(backend="easyocr").backend_name == "tesseract"
