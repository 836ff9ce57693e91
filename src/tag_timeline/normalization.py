"""Utilities to normalize tag names and colors."""

from __future__ import annotations

import re
from typing import Optional

DEFAULT_TAG_COLOR = "#7dd3fc"
UNKNOWN_TAG_NAME = "Unknown"

_DARK_TEXT = "#1a1a24"
_LIGHT_TEXT = "#ffffff"

_HEX_COLOR_PATTERN = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def normalize_tag_name(name: Optional[str]) -> Optional[str]:
    """Trim and collapse whitespace in a tag name."""
    if not name:
        return None
    normalized = re.sub(r"\s{2,}", " ", name).strip()
    return normalized or None


def tag_key(name: str) -> str:
    """Case-insensitive key used to match tags by name."""
    return (normalize_tag_name(name) or "").casefold()


def normalize_color(value: Optional[str]) -> str:
    """Return a lowercase ``#rrggbb`` color, expanding the short form."""
    if not value:
        return DEFAULT_TAG_COLOR
    match = _HEX_COLOR_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid color: {value!r}")
    digits = match.group(1).lower()
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return f"#{digits}"


def contrast_color(hex_color: str) -> str:
    """Pick dark or light text for a tag chip based on perceived brightness."""
    color = normalize_color(hex_color)
    r = int(color[1:3], 16)
    g = int(color[3:5], 16)
    b = int(color[5:7], 16)
    brightness = (r * 299 + g * 587 + b * 114) / 1000
    return _DARK_TEXT if brightness > 128 else _LIGHT_TEXT
