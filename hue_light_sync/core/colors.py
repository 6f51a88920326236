"""
Color space conversions used by the light state model.

RGB values are 0-255 channels, xy values are CIE 1931 chromaticity
coordinates and HSV is (hue degrees, saturation 0-1, value 0-1) unless noted.
"""

import math
import re
from typing import Optional, Sequence, Tuple

from colormath.color_conversions import convert_color
from colormath.color_objects import HSVColor, sRGBColor
from pydantic_extra_types.color import COLORS_BY_NAME, COLORS_BY_VALUE, Color

MIRED_MIN = 125
MIRED_MAX = 500
KELVIN_MIN = 2000
KELVIN_MAX = 8000

# Wide gamut RGB -> XYZ (D65) and its inverse
RGB_TO_XYZ = (
    (0.664511, 0.154324, 0.162028),
    (0.283881, 0.668433, 0.047685),
    (0.000088, 0.072310, 0.986039),
)
XYZ_TO_RGB = (
    (1.656492, -0.354851, -0.255038),
    (-0.707196, 1.655397, 0.036152),
    (0.051713, -0.121364, 1.011530),
)

WHITE_POINT: Tuple[float, float] = (0.3227, 0.3290)

HEX_PATTERN = re.compile(r"^#?[0-9a-fA-F]{6}$")

RGB = Tuple[int, int, int]
XY = Tuple[float, float]
HSV = Tuple[float, float, float]


def is_number(value) -> bool:
    """True for finite ints/floats, False for bools, NaN, inf and anything else"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def limit_value(value: Optional[float], minimum: float, maximum: float) -> float:
    """
    Ensure that value is inside the range [minimum, maximum].

    Missing or NaN values fall back to the minimum.
    """
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return minimum
    return max(minimum, min(maximum, value))


def _gamma_expand(value: float) -> float:
    if value > 0.04045:
        return ((value + 0.055) / 1.055) ** 2.4
    return value / 12.92


def _gamma_compress(value: float) -> float:
    if value <= 0.0031308:
        return 12.92 * value
    return 1.055 * value ** (1 / 2.4) - 0.055


def _apply_matrix(matrix, vector: Sequence[float]) -> Tuple[float, float, float]:
    return tuple(
        row[0] * vector[0] + row[1] * vector[1] + row[2] * vector[2] for row in matrix
    )


def rgb_to_xy(rgb: Sequence[float], gamma_correct: bool = True) -> XY:
    """Convert an RGB triple (0-255) to CIE xy chromaticity.

    Args:
        rgb: Red, green and blue channels in the 0-255 range
        gamma_correct: Apply sRGB gamma expansion before the matrix

    Returns:
        Tuple (x, y), both clamped to [0, 1]
    """
    channels = [limit_value(float(c), 0.0, 255.0) / 255.0 for c in rgb]
    if gamma_correct:
        channels = [_gamma_expand(c) for c in channels]

    X, Y, Z = _apply_matrix(RGB_TO_XYZ, channels)
    total = X + Y + Z
    if total <= 0:
        return WHITE_POINT

    return (limit_value(X / total, 0.0, 1.0), limit_value(Y / total, 0.0, 1.0))


def xy_to_rgb(xy: Sequence[float], brightness: float = 255, gamma_correct: bool = True) -> RGB:
    """Convert CIE xy chromaticity to an RGB triple.

    The chromaticity is rendered at full intensity (brightest channel at 1.0)
    and then scaled by ``brightness``.

    Args:
        xy: Chromaticity coordinates
        brightness: Target value of the brightest channel, 0-255
        gamma_correct: Apply inverse sRGB gamma after the matrix

    Returns:
        Tuple (r, g, b) of ints in 0-255
    """
    x = limit_value(xy[0], 0.0, 1.0)
    y = limit_value(xy[1], 0.0, 1.0)
    scale = limit_value(brightness, 0.0, 255.0)
    if y == 0:
        return (0, 0, 0)

    Y = 1.0
    X = (Y / y) * x
    Z = (Y / y) * (1.0 - x - y)

    linear = [max(0.0, c) for c in _apply_matrix(XYZ_TO_RGB, (X, Y, Z))]
    peak = max(linear)
    if peak > 0:
        linear = [c / peak for c in linear]

    if gamma_correct:
        linear = [_gamma_compress(c) for c in linear]

    return tuple(int(round(limit_value(c, 0.0, 1.0) * scale)) for c in linear)


def rgb_to_hsv(rgb: Sequence[float]) -> HSV:
    """RGB (0-255) to (hue degrees [0, 360), saturation 0-1, value 0-1)"""
    r, g, b = (limit_value(float(c), 0.0, 255.0) for c in rgb)
    hsv = convert_color(sRGBColor(r, g, b, is_upscaled=True), HSVColor)
    return (hsv.hsv_h % 360.0, hsv.hsv_s, hsv.hsv_v)


def hsv_to_rgb(hsv: Sequence[float]) -> RGB:
    """(hue degrees, saturation 0-1, value 0-1) to RGB (0-255)"""
    hue = limit_value(hsv[0], 0.0, 360.0) % 360.0
    sat = limit_value(hsv[1], 0.0, 1.0)
    val = limit_value(hsv[2], 0.0, 1.0)
    rgb = convert_color(HSVColor(hue, sat, val), sRGBColor)
    return tuple(
        int(limit_value(c, 0, 255)) for c in rgb.get_upscaled_value_tuple()
    )


def mired_to_kelvin(mired: float) -> float:
    return 1_000_000 / limit_value(mired, MIRED_MIN, MIRED_MAX)


def kelvin_to_mired(kelvin: float) -> float:
    return 1_000_000 / limit_value(kelvin, KELVIN_MIN, KELVIN_MAX)


def temperature_to_rgb(kelvin: float) -> RGB:
    """
    Approximate the RGB color of a black body at the given temperature.

    Curve fit published by Tanner Helland, good enough for display purposes.
    """
    temp = limit_value(kelvin, 1000, 40000) / 100

    if temp <= 66:
        red = 255.0
        green = 99.4708025861 * math.log(temp) - 161.1195681661
    else:
        red = 329.698727446 * ((temp - 60) ** -0.1332047592)
        green = 288.1221695283 * ((temp - 60) ** -0.0755148492)

    if temp >= 66:
        blue = 255.0
    elif temp <= 19:
        blue = 0.0
    else:
        blue = 138.5177312231 * math.log(temp - 10) - 305.0447927307

    return tuple(int(round(limit_value(c, 0, 255))) for c in (red, green, blue))


def hex_to_rgb(value) -> Optional[RGB]:
    """Parse a 6 digit hex string (leading # optional), None if it isn't one"""
    if not isinstance(value, str) or not HEX_PATTERN.match(value):
        return None
    text = value if value.startswith("#") else f"#{value}"
    return Color(text).as_rgb_tuple(alpha=False)


def rgb_to_hex(rgb: Sequence[int]) -> str:
    return "#" + "".join(f"{int(limit_value(c, 0, 255)):02x}" for c in rgb)


def rgb_to_name(rgb: Sequence[int]) -> str:
    """CSS keyword for the color, the nearest one when there is no exact match"""
    rgb = tuple(int(limit_value(c, 0, 255)) for c in rgb)
    if rgb in COLORS_BY_VALUE:
        return COLORS_BY_VALUE[rgb]
    return min(
        COLORS_BY_NAME,
        key=lambda name: sum((a - b) ** 2 for a, b in zip(COLORS_BY_NAME[name], rgb)),
    )
