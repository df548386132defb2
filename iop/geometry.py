"""
geometry.py – placement and transform maths for the text watermark.

Pure functions only, no rendering surface needed:
  1. anchor position from keywords, padding and offsets
  2. rotation angle (fixed or aligned with the image diagonal)
  3. rotation as an explicit affine transform around the text centre
  4. relative font size / padding against a base width
  5. transparency -> opacity byte as hex

Coordinates are screen coordinates (y grows downwards), text is placed
by its left baseline point like a 2D canvas `fillText`.
"""

from __future__ import annotations
import math
import re
from typing import Callable, Sequence, Tuple

import numpy as np
from PIL import ImageColor

from core.datatypes import (
    Anchor, ImageDimensions, PlacementResult, RotationSpec, TextMetrics,
    TransparencyOutOfRangeError, WatermarkSpec,
)

_NON_DIGIT = re.compile(r"\D")
_PX_SIZE = re.compile(r"\d+px")


def round_half_up(value: float) -> int:
    """round() with .5 always going up, python's round() is banker's rounding"""
    return int(math.floor(value + 0.5))


#############################
# 1. anchor position        #
#############################
def compute_anchor(metrics: TextMetrics,
                   dims: ImageDimensions,
                   padding: Tuple[float, float],
                   offsets: Tuple[float, float],
                   keywords: Sequence[str]) -> Tuple[float, float]:
    """
    Start centred, then apply every keyword in order. Each keyword only
    overrides its own axis, so "left right" ends up right aligned: the later
    keyword wins. Callers passing redundant keywords get the last one.
    Unknown keywords are skipped.
    """
    h_pad, v_pad = padding
    x_off, y_off = offsets

    x = dims.width / 2 - metrics.width / 2 + x_off
    y = dims.height / 2 + (metrics.ascent - metrics.descent) / 2 + y_off

    for keyword in keywords:
        try:
            anchor = Anchor(str(keyword).lower())
        except ValueError:
            continue
        if anchor is Anchor.TOP:
            y = metrics.ascent + y_off + v_pad
        elif anchor is Anchor.BOTTOM:
            y = dims.height - metrics.descent - v_pad + y_off
        elif anchor is Anchor.LEFT:
            x = x_off + h_pad
        elif anchor is Anchor.RIGHT:
            x = dims.width - metrics.width - h_pad + x_off
    return x, y


#############################
# 2. rotation               #
#############################
def compute_rotation(rotation: RotationSpec, dims: ImageDimensions) -> float:
    """Rotation in degrees, auto follows the image diagonal"""
    if rotation.is_auto:
        return math.degrees(math.atan(dims.height / dims.width))
    return rotation.degrees


def rotation_pivot(anchor: Tuple[float, float], metrics: TextMetrics) -> Tuple[float, float]:
    """Visual centre of the text drawn at `anchor`"""
    x, y = anchor
    return (x + metrics.width / 2, y - (metrics.ascent + metrics.descent) / 2)


def translate_matrix(tx: float, ty: float) -> np.ndarray:
    return np.array([[1.0, 0.0, tx],
                     [0.0, 1.0, ty],
                     [0.0, 0.0, 1.0]])


def rotate_matrix(degrees: float) -> np.ndarray:
    # y points down, so a positive angle turns clockwise on screen
    theta = math.radians(degrees)
    c, s = math.cos(theta), math.sin(theta)
    return np.array([[c, -s, 0.0],
                     [s, c, 0.0],
                     [0.0, 0.0, 1.0]])


def rotation_transform(anchor: Tuple[float, float],
                       metrics: TextMetrics,
                       degrees: float) -> np.ndarray:
    """
    translate(pivot) @ rotate(angle) @ translate(-pivot)

    Maps text-space points to image-space points; the text is drawn
    unrotated first and then pushed through this matrix.
    """
    px, py = rotation_pivot(anchor, metrics)
    return translate_matrix(px, py) @ rotate_matrix(degrees) @ translate_matrix(-px, -py)


def apply_transform(matrix: np.ndarray, point: Tuple[float, float]) -> Tuple[float, float]:
    x, y, _ = matrix @ np.array([point[0], point[1], 1.0])
    return float(x), float(y)


#############################
# 3. relative sizing        #
#############################
def font_pixel_size(font: str) -> int:
    """All the digits of the descriptor, e.g. 'bold 40px Arial' -> 40"""
    digits = _NON_DIGIT.sub("", font)
    if not digits:
        raise ValueError(f"font descriptor '{font}' has no pixel size")
    return int(digits)


def compute_relative_font_size(font: str, base_width: float, dims: ImageDimensions) -> str:
    ratio = font_pixel_size(font) / base_width
    size = int(math.floor(dims.width * ratio))
    return _PX_SIZE.sub(f"{size}px", font, count=1)


def compute_relative_padding(base_width: float,
                             dims: ImageDimensions,
                             padding: Tuple[float, float]) -> Tuple[float, float]:
    ratio = dims.width / base_width
    return (padding[0] * ratio, padding[1] * ratio)


#############################
# 4. colour                 #
#############################
def validate_transparency(transparency: float) -> float:
    if not 0 <= transparency <= 100:
        raise TransparencyOutOfRangeError(
            f"transparency {transparency} is outside [0, 100]"
        )
    return transparency


def alpha_to_hex(transparency: float) -> str:
    """
    0 (opaque) .. 100 (invisible) -> two digit lowercase hex opacity byte.
    Out of range values are reported and rendered fully transparent.
    """
    try:
        validate_transparency(transparency)
    except TransparencyOutOfRangeError as e:
        print(f"[geometry] Transparency out of bounds: {e}")
        return "00"
    opacity = round_half_up((100 - transparency) / 100 * 255)
    return f"{opacity:02x}"


def fill_style(color: str, transparency: float) -> str:
    """'#rrggbb' + alpha byte; named colours go through Pillow first"""
    if not re.fullmatch(r"#[0-9a-fA-F]{6}", color):
        r, g, b = ImageColor.getrgb(color)[:3]
        color = f"#{r:02x}{g:02x}{b:02x}"
    return color.lower() + alpha_to_hex(transparency)


#############################
# 5. progress               #
#############################
def completion_percent(done: int, remaining: int) -> int:
    total = done + remaining
    if total == 0:
        return 0
    return round_half_up(done / total * 100)


#############################
# 6. full placement         #
#############################
def compute_placement(spec: WatermarkSpec,
                      dims: ImageDimensions,
                      measure: Callable[[str, str], TextMetrics]) -> PlacementResult:
    """
    Everything the renderer needs for one image.

    `measure(text, font)` returns the metrics of `text` in the effective font,
    it is the only piece that touches a font backend.
    """
    font = spec.font
    padding = spec.padding
    if spec.relative_font_size:
        font = compute_relative_font_size(spec.font, spec.base_width, dims)
        padding = compute_relative_padding(spec.base_width, dims, spec.padding)

    metrics = measure(spec.text, font)
    x, y = compute_anchor(metrics, dims, padding, spec.offsets, spec.position)
    angle = compute_rotation(spec.rotation, dims)
    transform = rotation_transform((x, y), metrics, angle)
    return PlacementResult(
        x=x, y=y, font=font, padding=padding, angle=angle,
        metrics=metrics, transform=transform,
    )
