"""
engine/images.py

Turning image files into block payloads.
"""

from __future__ import annotations

import io
import mimetypes
from pathlib import Path
from typing import Union

from PIL import Image, UnidentifiedImageError

from engine.errors import InvalidDropError
from utils import encode_data_uri

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp")


def is_image_file(path: Union[str, Path]) -> bool:
    """Cheap check by file name; contents are verified in read_image_payload."""
    mime, _ = mimetypes.guess_type(str(path))
    if mime:
        return mime.startswith("image/")
    return Path(path).suffix.lower() in IMAGE_EXTENSIONS


def read_image_payload(path: Union[str, Path]) -> str:
    """
    Read an image file into a data URI payload.

    The bytes are kept as-is; Pillow is only used to confirm they decode.

    Raises:
        InvalidDropError: If the file is missing, not an image, or corrupt.
    """
    path = Path(path)
    if not is_image_file(path):
        raise InvalidDropError(f"Not an image file: {path.name}")
    try:
        data = path.read_bytes()
    except OSError as e:
        raise InvalidDropError(f"Cannot read {path}: {e}") from e
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            fmt = img.format
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise InvalidDropError(f"Cannot decode {path.name}: {e}") from e

    mime = Image.MIME.get(fmt or "") or mimetypes.guess_type(str(path))[0] or "image/png"
    return encode_data_uri(data, mime)
