"""
Image Processor Module.

This module normalizes uploaded JPEG/PNG bytes before OCR:
    - Decoding and validation
    - EXIF orientation correction
    - RGB conversion (alpha flattened onto white)
    - Downscaling of oversized photos
    - Optional contrast enhancement
    - Re-encoding to PNG

Author: ML Engineering Team
"""

import io
from PIL import Image, ImageOps, ImageEnhance, UnidentifiedImageError

from config import get_config
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.exceptions import ExtractionFailedError

# Initialize module logger
logger = get_logger(__name__)


class ImageProcessor:
    """
    Processor for image uploads (JPEG, PNG).

    Whatever the upload encoding, the output is an RGB image re-encoded
    as PNG, which is what the OCR backend is fed.

    Attributes:
        max_width: Maximum image width in pixels
        max_height: Maximum image height in pixels
        auto_orient: Whether to apply EXIF orientation
        enhance_contrast: Whether to apply contrast enhancement

    Example:
        >>> processor = ImageProcessor()
        >>> image = processor.normalize(jpeg_bytes)
        >>> image.format
        'PNG'
    """

    def __init__(self) -> None:
        """Initialize the image processor with configuration."""
        self.max_width = get_config("input.image.max_width", 2480)
        self.max_height = get_config("input.image.max_height", 3508)
        self.auto_orient = get_config("input.image.auto_orient", True)
        self.enhance_contrast = get_config("input.image.enhance_contrast", False)

        logger.debug(
            f"ImageProcessor initialized (max_size={self.max_width}x{self.max_height})"
        )

    def normalize(self, data: bytes) -> Image.Image:
        """
        Decode image bytes and normalize them for OCR.

        Args:
            data: Raw JPEG or PNG bytes.

        Returns:
            RGB PIL Image decoded from a PNG re-encoding.

        Raises:
            ExtractionFailedError: If the bytes are not a decodable image.
        """
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            logger.error(f"Failed to decode image: {e}")
            raise ExtractionFailedError("image", e) from e

        original_size = image.size
        image = self._process_image(image)
        image = self._reencode_png(image)

        logger.info(
            f"Normalized image: {image.width}x{image.height} "
            f"(original: {original_size[0]}x{original_size[1]})"
        )
        return image

    def _process_image(self, image: Image.Image) -> Image.Image:
        """
        Apply the processing steps in order.

        Processing steps:
            1. Fix orientation from EXIF data
            2. Convert to RGB
            3. Resize if too large
            4. Enhance contrast (optional)
        """
        if self.auto_orient:
            image = ImageOps.exif_transpose(image)

        image = self._convert_to_rgb(image)
        image = self._resize_if_needed(image)

        if self.enhance_contrast:
            image = self._enhance_image(image)

        return image

    def _convert_to_rgb(self, image: Image.Image) -> Image.Image:
        """
        Convert image to RGB mode.

        RGBA and LA images are flattened onto a white background so that
        transparent regions do not turn black.
        """
        if image.mode == 'RGB':
            return image

        original_mode = image.mode

        if image.mode in ('RGBA', 'LA'):
            rgba = image.convert('RGBA')
            background = Image.new('RGB', rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[3])
            image = background
        else:
            image = image.convert('RGB')

        logger.debug(f"Converted image from {original_mode} to RGB")
        return image

    def _resize_if_needed(self, image: Image.Image) -> Image.Image:
        """Downscale to fit max_width x max_height, keeping aspect ratio."""
        width, height = image.size

        if width <= self.max_width and height <= self.max_height:
            return image

        ratio = min(self.max_width / width, self.max_height / height)
        new_size = (int(width * ratio), int(height * ratio))

        image = image.resize(new_size, Image.LANCZOS)

        logger.debug(f"Resized image from {width}x{height} to {new_size[0]}x{new_size[1]}")
        return image

    def _enhance_image(self, image: Image.Image) -> Image.Image:
        image = ImageEnhance.Contrast(image).enhance(1.2)
        image = ImageEnhance.Sharpness(image).enhance(1.1)
        logger.debug("Applied image enhancements")
        return image

    @staticmethod
    def _reencode_png(image: Image.Image) -> Image.Image:
        buffer = io.BytesIO()
        image.save(buffer, format='PNG')
        buffer.seek(0)
        reencoded = Image.open(buffer)
        reencoded.load()
        return reencoded
