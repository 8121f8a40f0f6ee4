"""
Helper Utilities Module.

Small, generic functions shared across the intake pipeline.

Functions:
    - ensure_directory: Create directory if it doesn't exist
    - generate_id: Create opaque identifiers for invoices and documents
    - utc_now: Timezone-aware current timestamp
    - format_file_size: Human-readable byte counts for error messages
"""

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Union


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists.

    Returns:
        Path object pointing to the directory.

    Example:
        >>> ensure_directory("outputs")
        PosixPath('outputs')
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def generate_id() -> str:
    """Return a new opaque identifier."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: File size in bytes.

    Returns:
        Human-readable file size string.

    Example:
        >>> format_file_size(1536)
        "1.5 KB"
        >>> format_file_size(10485760)
        "10.0 MB"
    """
    size = float(size_bytes)
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} PB"
