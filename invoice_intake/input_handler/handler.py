"""
Main Input Handler Module.

This module provides the InputHandler class that checks an upload before
any extraction work is done. Uploads are held in memory as UploadedFile
objects; nothing is written to disk.

Usage:
    from invoice_intake.input_handler import InputHandler, UploadedFile

    handler = InputHandler()
    upload = UploadedFile.from_path("invoice.pdf")
    handler.validate(upload)

Classes:
    UploadedFile: In-memory upload (filename, content type, bytes)
    InputHandler: Upload validation against configured limits
"""

import mimetypes
from pathlib import Path
from typing import List, Optional, Union
from dataclasses import dataclass, field

from config import get_config
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.helpers import format_file_size
from invoice_intake.utils.exceptions import InvalidUploadError


# Initialize module logger
logger = get_logger(__name__)

DEFAULT_ALLOWED_MIME_TYPES = ["application/pdf", "image/jpeg", "image/png"]
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@dataclass
class UploadedFile:
    """
    Data class representing a single uploaded document.

    Attributes:
        filename: Original filename as given by the client
        content_type: Declared MIME type
        data: Raw file bytes
    """
    filename: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(
        cls,
        filepath: Union[str, Path],
        content_type: Optional[str] = None
    ) -> "UploadedFile":
        """
        Build an upload from a file on disk.

        The MIME type is guessed from the file extension when not given.

        Args:
            filepath: Path to the document.
            content_type: Explicit MIME type, overrides the guess.

        Returns:
            UploadedFile holding the file's bytes.
        """
        path = Path(filepath)
        if content_type is None:
            content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            content_type=content_type or "application/octet-stream",
            data=path.read_bytes()
        )

    def __repr__(self) -> str:
        return (
            f"UploadedFile(filename='{self.filename}', "
            f"content_type='{self.content_type}', "
            f"size={format_file_size(self.size)})"
        )


class InputHandler:
    """
    Validates uploads before they reach the text extractor.

    An upload is accepted when its MIME type is one of the allowed
    types, it is not empty, and it does not exceed the size cap.

    Attributes:
        allowed_mime_types: MIME types accepted for upload
        max_upload_bytes: Maximum accepted upload size in bytes

    Example:
        >>> handler = InputHandler()
        >>> handler.validate(UploadedFile("a.gif", "image/gif", b"GIF89a"))
        Traceback (most recent call last):
        ...
        InvalidUploadError: Invalid file type...
    """

    def __init__(
        self,
        allowed_mime_types: Optional[List[str]] = None,
        max_upload_bytes: Optional[int] = None
    ) -> None:
        """
        Initialize the InputHandler.

        Args:
            allowed_mime_types: Overrides ``input.allowed_mime_types``.
            max_upload_bytes: Overrides ``input.max_upload_bytes``.
        """
        self.allowed_mime_types = list(
            allowed_mime_types
            or get_config("input.allowed_mime_types", DEFAULT_ALLOWED_MIME_TYPES)
        )
        self.max_upload_bytes = int(
            max_upload_bytes
            or get_config("input.max_upload_bytes", DEFAULT_MAX_UPLOAD_BYTES)
        )

        logger.debug(
            f"InputHandler initialized (types={self.allowed_mime_types}, "
            f"max={format_file_size(self.max_upload_bytes)})"
        )

    def validate(self, upload: UploadedFile) -> UploadedFile:
        """
        Check an upload against the configured limits.

        Args:
            upload: The uploaded document.

        Returns:
            The same upload, for chaining.

        Raises:
            InvalidUploadError: If the type is not allowed, the file is
                empty, or the file is too large.
        """
        if upload.content_type not in self.allowed_mime_types:
            raise InvalidUploadError(
                "Invalid file type. Only PDF, JPEG, and PNG files are allowed.",
                {
                    "filename": upload.filename,
                    "content_type": upload.content_type,
                    "allowed": self.allowed_mime_types,
                }
            )

        if upload.size == 0:
            raise InvalidUploadError(
                "Uploaded file is empty",
                {"filename": upload.filename}
            )

        if upload.size > self.max_upload_bytes:
            raise InvalidUploadError(
                f"File size exceeds {format_file_size(self.max_upload_bytes)} limit",
                {
                    "filename": upload.filename,
                    "size": upload.size,
                    "max_size": self.max_upload_bytes,
                }
            )

        logger.debug(f"Upload accepted: {upload!r}")
        return upload
