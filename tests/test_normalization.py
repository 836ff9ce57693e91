from __future__ import annotations

import pytest

from tag_timeline.normalization import (
    contrast_color,
    normalize_color,
    normalize_tag_name,
    tag_key,
)


def test_contrast_color_by_brightness() -> None:
    assert contrast_color("#7dd3fc") == "#1a1a24"
    assert contrast_color("#000000") == "#ffffff"
    assert contrast_color("#fff") == "#1a1a24"


def test_normalize_color() -> None:
    assert normalize_color("ABC") == "#aabbcc"
    assert normalize_color(None) == "#7dd3fc"
    with pytest.raises(ValueError):
        normalize_color("#12345")


def test_tag_names() -> None:
    assert normalize_tag_name("  deep   work ") == "deep work"
    assert normalize_tag_name("   ") is None
    assert tag_key(" Deep Work") == tag_key("deep work")
