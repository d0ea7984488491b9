"""
色空間変換のpytestテスト
"""

import pytest
from colormath.color_conversions import convert_color
from colormath.color_objects import LabColor, sRGBColor

from convert import (
    hex_to_rgb,
    lab_to_srgb,
    lab_to_xyz,
    linear_rgb_to_srgb,
    rgb_to_hex,
    srgb_to_lab,
    srgb_to_linear,
    linear_to_srgb,
    xyz_to_lab,
)

PALETTE_RGB = [
    (183, 30, 45),    # RH01
    (0, 107, 63),     # RH10
    (212, 181, 133),  # RH30
    (127, 127, 127),
    (30, 70, 150),
]


class TestHex:
    """16進数カラーコード"""

    def test_hex_to_rgb(self):
        assert hex_to_rgb("#B71E2D") == (183, 30, 45)

    def test_hex_without_hash_and_lowercase(self):
        assert hex_to_rgb("006b3f") == (0, 107, 63)

    def test_rgb_to_hex_is_uppercase(self):
        assert rgb_to_hex((183, 30, 45)) == "#B71E2D"

    def test_rgb_to_hex_clamps(self):
        assert rgb_to_hex((300, -5, 127.6)) == "#FF0080"

    @pytest.mark.parametrize("bad", ["", "   ", "#12345", "#GGGGGG"])
    def test_invalid_hex(self, bad):
        with pytest.raises(ValueError):
            hex_to_rgb(bad)


class TestGamma:
    """sRGBガンマ"""

    def test_linear_segment(self):
        assert srgb_to_linear(0.04) == pytest.approx(0.04 / 12.92)
        assert linear_to_srgb(0.003) == pytest.approx(0.003 * 12.92)

    def test_inverse(self):
        for v in (0.0, 0.02, 0.2, 0.5, 0.9, 1.0):
            assert linear_to_srgb(srgb_to_linear(v)) == pytest.approx(v, abs=1e-9)

    def test_linear_to_srgb_clamps(self):
        assert linear_rgb_to_srgb((1.2, -0.1, 0.0)) == (255, 0, 0)


class TestLab:
    """Lab変換"""

    def test_white(self):
        L, a, b = srgb_to_lab((255, 255, 255))
        assert L == pytest.approx(100.0, abs=0.01)
        assert a == pytest.approx(0.0, abs=0.05)
        assert b == pytest.approx(0.0, abs=0.05)

    def test_black(self):
        assert srgb_to_lab((0, 0, 0)) == pytest.approx((0.0, 0.0, 0.0), abs=1e-9)

    def test_grey_is_neutral(self):
        L, a, b = srgb_to_lab((127, 127, 127))
        assert 50 < L < 55
        assert abs(a) < 0.05
        assert abs(b) < 0.05

    @pytest.mark.parametrize("rgb", PALETTE_RGB + [(255, 255, 255), (0, 0, 0)])
    def test_round_trip_within_one(self, rgb):
        back = lab_to_srgb(srgb_to_lab(rgb))
        for orig, conv in zip(rgb, back):
            assert abs(orig - conv) <= 1

    def test_xyz_round_trip(self):
        lab = (52.0, 31.5, 12.0)
        assert xyz_to_lab(lab_to_xyz(lab)) == pytest.approx(lab, abs=1e-9)

    @pytest.mark.parametrize("rgb", PALETTE_RGB)
    def test_matches_colormath(self, rgb):
        """colormathのD65変換と一致する"""
        expected = convert_color(sRGBColor(*rgb, is_upscaled=True), LabColor,
                                 target_illuminant='d65')
        L, a, b = srgb_to_lab(rgb)
        assert L == pytest.approx(expected.lab_l, abs=0.5)
        assert a == pytest.approx(expected.lab_a, abs=0.5)
        assert b == pytest.approx(expected.lab_b, abs=0.5)
