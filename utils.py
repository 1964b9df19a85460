"""
utils.py

Utility functions for the CyberWeaver application.
"""

from __future__ import annotations

import base64
import binascii
import html
import re
from typing import Optional, Tuple
from urllib.parse import unquote_to_bytes

RGBA = Tuple[int, int, int, int]


def hex_to_rgba(s: str, fallback: RGBA) -> RGBA:
    """
    Parse a hex color string to an RGBA tuple.

    Accepts "#RGB", "#RRGGBB" and "#RRGGBBAA" (leading "#" optional).

    Args:
        s: Hex color string
        fallback: Color to return if parsing fails

    Returns:
        Parsed (r, g, b, a) tuple or fallback
    """
    if not s:
        return fallback
    s = s.strip()
    if s.startswith("#"):
        s = s[1:]
    if len(s) == 3:
        s = "".join(ch * 2 for ch in s)
    try:
        if len(s) == 6:
            return (int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16), 255)
        if len(s) == 8:
            return (int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16), int(s[6:8], 16))
    except ValueError:
        pass
    return fallback


def rgba_to_hex(c: RGBA, include_alpha: bool = False) -> str:
    """
    Convert an RGBA tuple to a hex string.

    Args:
        c: The (r, g, b, a) tuple
        include_alpha: If True, include alpha channel as 4th byte

    Returns:
        Hex string like "#RRGGBB" or "#RRGGBBAA"
    """
    if include_alpha:
        return "#{:02X}{:02X}{:02X}{:02X}".format(*c)
    return "#{:02X}{:02X}{:02X}".format(c[0], c[1], c[2])


_PX_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)\s*(?:px)?\s*$")


def parse_px(value, fallback: Optional[float] = None) -> Optional[float]:
    """
    Parse a CSS pixel length such as "120px" or "12.5" into a float.

    Numbers pass through unchanged; anything unparseable yields fallback.
    """
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        m = _PX_RE.match(value)
        if m:
            return float(m.group(1))
    return fallback


_TAG_RE = re.compile(r"<[^>]+>")
_HIDDEN_RE = re.compile(r"<(head|style|script)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL)


def strip_html(s: str) -> str:
    """Remove markup (and head/style/script contents) from HTML and unescape entities."""
    return html.unescape(_TAG_RE.sub(" ", _HIDDEN_RE.sub(" ", s or "")))


# ----------------------------
# Data URIs
# ----------------------------

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[\w-]+=[^;,]*)*)(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)


def encode_data_uri(data: bytes, mime: str) -> str:
    """Encode raw bytes as a base64 data URI."""
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_uri(uri: str) -> Tuple[str, bytes]:
    """
    Decode a data URI into its mime type and raw bytes.

    Raises:
        ValueError: If the string is not a well-formed data URI.
    """
    m = _DATA_URI_RE.match(uri or "")
    if not m:
        raise ValueError("Not a data URI")
    mime = m.group("mime") or "text/plain"
    payload = m.group("data")
    if m.group("b64"):
        try:
            return mime, base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e
    return mime, unquote_to_bytes(payload)


def is_image_data_uri(uri: str) -> bool:
    """Check whether a string is a data URI with an image/* mime type."""
    m = _DATA_URI_RE.match(uri or "")
    return bool(m and (m.group("mime") or "").startswith("image/"))
