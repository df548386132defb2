# -*- coding: utf-8 -*-
"""
Font helpers for the text watermark.

Font descriptors use the CSS shorthand the watermark config is written in:

    [style words] <size>px <family>

e.g. "bold 48px DejaVuSans". The family is handed to Pillow's truetype
loader, which accepts a font file name ("DejaVuSans.ttf"), a bare name it
can find on the system font path, or a full path to a .ttf/.otf file.
"""

import re
from functools import lru_cache

from PIL import ImageFont

from core.datatypes import TextMetrics

_SIZE_TOKEN = re.compile(r"(\d+)px")

# Suffixes tried when the family is given without one
_FONT_SUFFIXES = ("", ".ttf", ".otf", ".ttc")


def parse_font_descriptor(descriptor):
    """
    Splits a descriptor into (family, size).

    Args:
        descriptor (str): e.g. "bold 40px Arial".

    Returns:
        tuple[str, int]: family name (possibly empty) and pixel size.
    """
    match = _SIZE_TOKEN.search(descriptor)
    if not match:
        raise ValueError(f"font descriptor '{descriptor}' has no '<N>px' size")
    size = int(match.group(1))
    family = descriptor[match.end():].strip().strip('"\'')
    return family, size


@lru_cache(maxsize=32)
def load_font(descriptor):
    """
    Loads the Pillow font for a descriptor, falling back to Pillow's
    bundled default font at the same size when the family is not found.
    """
    family, size = parse_font_descriptor(descriptor)
    if family:
        for suffix in _FONT_SUFFIXES:
            try:
                return ImageFont.truetype(family + suffix, size)
            except OSError:
                continue
        print(f"[font] Font '{family}' not found, using the default font at {size}px.")
    return ImageFont.load_default(size=size)


def measure_text(text, descriptor):
    """
    Width, ascent and descent of `text` measured from its left baseline,
    the same numbers a canvas measureText() reports.
    """
    font = load_font(descriptor)
    left, top, right, bottom = font.getbbox(text, anchor="ls")
    return TextMetrics(
        width=float(font.getlength(text)),
        ascent=float(-top),
        descent=float(bottom),
    )
