import math
import sys
from pathlib import Path

import pytest

# Add the parent directory to sys.path so we can import the project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from hue_light_sync.core.colors import (
    WHITE_POINT,
    hex_to_rgb,
    hsv_to_rgb,
    is_number,
    kelvin_to_mired,
    limit_value,
    mired_to_kelvin,
    rgb_to_hex,
    rgb_to_hsv,
    rgb_to_name,
    rgb_to_xy,
    temperature_to_rgb,
    xy_to_rgb,
)


def assert_rgb_close(actual, expected, tolerance=3):
    assert all(abs(a - e) <= tolerance for a, e in zip(actual, expected)), (
        f"{actual} differs from {expected}"
    )


class TestHelpers:
    def test_is_number(self):
        """Test that only finite ints and floats count as numbers"""
        assert is_number(0)
        assert is_number(1.5)
        assert not is_number(True)
        assert not is_number(float("nan"))
        assert not is_number(float("inf"))
        assert not is_number("1")
        assert not is_number(None)

    def test_limit_value(self):
        """Test clamping and the fallback for missing values"""
        assert limit_value(20, 0, 10) == 10
        assert limit_value(-5, 0, 10) == 0
        assert limit_value(5, 0, 10) == 5
        assert limit_value(None, 1, 10) == 1
        assert limit_value(float("nan"), 2, 10) == 2


class TestXYConversion:
    @pytest.mark.parametrize(
        "rgb",
        [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 128, 0), (255, 255, 255)],
    )
    def test_round_trip_full_brightness(self, rgb):
        """Test that colors with a full channel survive RGB -> xy -> RGB"""
        assert_rgb_close(xy_to_rgb(rgb_to_xy(rgb)), rgb)

    def test_black_maps_to_white_point(self):
        """Test that black has no chromaticity and falls back to the white point"""
        assert rgb_to_xy((0, 0, 0)) == WHITE_POINT

    def test_white_is_near_white_point(self):
        """Test that white ends up close to the D65 white point"""
        x, y = rgb_to_xy((255, 255, 255))
        assert x == pytest.approx(WHITE_POINT[0], abs=0.01)
        assert y == pytest.approx(WHITE_POINT[1], abs=0.01)

    def test_xy_in_unit_range(self):
        """Test that xy coordinates are always inside [0, 1]"""
        for rgb in [(300, -20, 0), (0, 0, 1), (12, 200, 90)]:
            x, y = rgb_to_xy(rgb)
            assert 0.0 <= x <= 1.0
            assert 0.0 <= y <= 1.0

    def test_zero_y_gives_black(self):
        """Test that y == 0 is treated as black"""
        assert xy_to_rgb((0.5, 0.0)) == (0, 0, 0)

    def test_brightness_scales_result(self):
        """Test that the brightest channel follows the brightness argument"""
        rgb = xy_to_rgb(rgb_to_xy((255, 0, 0)), brightness=128)
        assert max(rgb) == 128
        assert all(0 <= c <= 255 for c in xy_to_rgb((0.1, 0.9), brightness=999))


class TestHSVConversion:
    def test_rgb_to_hsv(self):
        """Test RGB to HSV for primary colors"""
        assert rgb_to_hsv((255, 0, 0)) == pytest.approx((0.0, 1.0, 1.0))
        hue, sat, val = rgb_to_hsv((0, 0, 255))
        assert hue == pytest.approx(240.0)
        assert sat == pytest.approx(1.0)
        assert val == pytest.approx(1.0)

    def test_hsv_to_rgb(self):
        """Test HSV to RGB including out of range input"""
        assert hsv_to_rgb((0, 1.0, 1.0)) == (255, 0, 0)
        assert hsv_to_rgb((120, 1.0, 1.0)) == (0, 255, 0)
        assert hsv_to_rgb((0, 0.0, 0.0)) == (0, 0, 0)
        assert hsv_to_rgb((0, 5.0, 5.0)) == (255, 0, 0)


class TestTemperature:
    def test_mired_kelvin_conversion(self):
        """Test conversion between mired and kelvin with clamping"""
        assert mired_to_kelvin(500) == 2000
        assert mired_to_kelvin(250) == 4000
        assert mired_to_kelvin(50) == 8000
        assert kelvin_to_mired(4000) == 250
        assert kelvin_to_mired(100) == 500
        assert kelvin_to_mired(10000) == 125

    def test_temperature_to_rgb(self):
        """Test that warm temperatures are red heavy and daylight is white"""
        assert temperature_to_rgb(6600) == (255, 255, 255)
        red, green, blue = temperature_to_rgb(2000)
        assert red == 255
        assert blue < green < red


class TestHex:
    def test_hex_to_rgb(self):
        """Test parsing of hex codes with and without the leading #"""
        assert hex_to_rgb("#ff0000") == (255, 0, 0)
        assert hex_to_rgb("00FF00") == (0, 255, 0)

    @pytest.mark.parametrize("value", ["red", "#fff", "#gg0000", "", None, 123])
    def test_hex_to_rgb_invalid(self, value):
        """Test that anything but a 6 digit hex code is rejected"""
        assert hex_to_rgb(value) is None

    def test_rgb_to_hex(self):
        """Test formatting RGB as lowercase hex"""
        assert rgb_to_hex((255, 0, 128)) == "#ff0080"
        assert rgb_to_hex((300, -1, 0)) == "#ff0000"

    def test_rgb_to_name(self):
        """Test exact CSS keywords"""
        assert rgb_to_name((255, 0, 0)) == "red"
        assert rgb_to_name((0, 0, 0)) == "black"

    def test_rgb_to_name_nearest(self):
        """Test that colors without a keyword get the closest one"""
        assert rgb_to_name((1, 2, 3)) == "black"
        assert rgb_to_name((250, 10, 10)) == "red"
        assert rgb_to_name((0, 0, 250)) == "blue"
        assert not rgb_to_name((12, 200, 90)).startswith("#")
