"""Helpers for describing local image files before upload."""
from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from imageclient.models import LocalFile
from imageclient.services.errors import ErrorKind, UploadError

logger = logging.getLogger(__name__)

_VALID_IMAGE_PREFIX = "image/"


def describe_file(path: Union[str, Path, None]) -> LocalFile:
    """Return a :class:`LocalFile` for ``path``.

    Raises :class:`UploadError` with ``NO_FILE_SELECTED`` when the path is
    missing and ``UNSUPPORTED_FILE`` when no image content type can be derived.
    """

    if not path:
        raise UploadError(ErrorKind.NO_FILE_SELECTED, "Please select a file to upload")
    path = Path(path).expanduser()
    if not path.is_file():
        raise UploadError(ErrorKind.NO_FILE_SELECTED, f"File not found: {path}")

    content_type = _sniff_content_type(path) or mimetypes.guess_type(path.name)[0]
    if not content_type or not content_type.startswith(_VALID_IMAGE_PREFIX):
        raise UploadError(
            ErrorKind.UNSUPPORTED_FILE,
            f"Unsupported file type for {path.name}; expected image/*, got {content_type or 'unknown'}",
        )

    return LocalFile(path=path, name=path.name, content_type=content_type, size=path.stat().st_size)


def format_size(num_bytes: Optional[int]) -> str:
    if num_bytes is None:
        return "Unknown"
    return f"{num_bytes / 1024:.1f} KB"


def _sniff_content_type(path: Path) -> Optional[str]:
    try:
        with Image.open(path) as img:
            return Image.MIME.get(img.format or "")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        logger.debug("Pillow could not identify %s: %s", path, exc)
        return None
