"""
TPVMixer - 色空間変換
sRGB ↔ リニアRGB ↔ XYZ ↔ Lab (D65固定パイプライン)
"""

from typing import Tuple

from colormath.color_objects import sRGBColor

RGB = Tuple[int, int, int]
LinearRGB = Tuple[float, float, float]
XYZ = Tuple[float, float, float]
Lab = Tuple[float, float, float]

# D65白色点
D65_WHITE = (0.95047, 1.0, 1.08883)

# sRGB原色 (D65) のリニアRGB→XYZ行列
RGB_TO_XYZ_MATRIX = (
    (0.4124564, 0.3575761, 0.1804375),
    (0.2126729, 0.7151522, 0.0721750),
    (0.0193339, 0.1191920, 0.9503041),
)

XYZ_TO_RGB_MATRIX = (
    (3.2404542, -1.5371385, -0.4985314),
    (-0.9692660, 1.8760108, 0.0415560),
    (0.0556434, -0.2040259, 1.0572252),
)

_DELTA = 6 / 29


def srgb_to_linear(value: float) -> float:
    """ガンマ展開 (0-1のsRGB値 → リニア値)"""
    if value <= 0.04045:
        return value / 12.92
    return ((value + 0.055) / 1.055) ** 2.4


def linear_to_srgb(value: float) -> float:
    """ガンマ圧縮 (リニア値 → 0-1のsRGB値)"""
    if value <= 0.0031308:
        return value * 12.92
    return 1.055 * value ** (1 / 2.4) - 0.055


def srgb_to_linear_rgb(rgb: RGB) -> LinearRGB:
    """sRGB(0-255) → リニアRGB(0-1)"""
    return tuple(srgb_to_linear(c / 255.0) for c in rgb)


def linear_rgb_to_srgb(linear: LinearRGB) -> RGB:
    """リニアRGB → sRGB(0-255)。丸めとクランプはここでのみ行う"""
    return tuple(
        int(max(0, min(255, round(linear_to_srgb(c) * 255))))
        for c in linear
    )


def _apply_matrix(matrix, v):
    return tuple(row[0] * v[0] + row[1] * v[1] + row[2] * v[2] for row in matrix)


def linear_rgb_to_xyz(linear: LinearRGB) -> XYZ:
    return _apply_matrix(RGB_TO_XYZ_MATRIX, linear)


def xyz_to_linear_rgb(xyz: XYZ) -> LinearRGB:
    return _apply_matrix(XYZ_TO_RGB_MATRIX, xyz)


def _f(t: float) -> float:
    if t > _DELTA ** 3:
        return t ** (1 / 3)
    return t / (3 * _DELTA * _DELTA) + 4 / 29


def _f_inv(t: float) -> float:
    if t > _DELTA:
        return t ** 3
    return 3 * _DELTA * _DELTA * (t - 4 / 29)


def xyz_to_lab(xyz: XYZ) -> Lab:
    """XYZ → CIE L*a*b* (D65)"""
    xn, yn, zn = D65_WHITE
    fx = _f(xyz[0] / xn)
    fy = _f(xyz[1] / yn)
    fz = _f(xyz[2] / zn)
    return (116 * fy - 16, 500 * (fx - fy), 200 * (fy - fz))


def lab_to_xyz(lab: Lab) -> XYZ:
    """CIE L*a*b* (D65) → XYZ"""
    L, a, b = lab
    xn, yn, zn = D65_WHITE
    fy = (L + 16) / 116
    fx = a / 500 + fy
    fz = fy - b / 200
    return (xn * _f_inv(fx), yn * _f_inv(fy), zn * _f_inv(fz))


def srgb_to_lab(rgb: RGB) -> Lab:
    """RGB値(0-255)をLab値に変換"""
    return xyz_to_lab(linear_rgb_to_xyz(srgb_to_linear_rgb(rgb)))


def lab_to_srgb(lab: Lab) -> RGB:
    """Lab値をRGB値に変換(0-255)"""
    return linear_rgb_to_srgb(xyz_to_linear_rgb(lab_to_xyz(lab)))


def clamp_rgb(rgb) -> RGB:
    return tuple(int(max(0, min(255, round(c)))) for c in rgb)


def hex_to_rgb(hex_str: str) -> RGB:
    """'#RRGGBB' → (R, G, B)。形式が不正ならValueError"""
    if not hex_str or not hex_str.strip():
        raise ValueError("empty hex colour")
    return sRGBColor.new_from_rgb_hex(hex_str).get_upscaled_value_tuple()


def rgb_to_hex(rgb) -> str:
    """(R, G, B) → '#RRGGBB' (大文字)"""
    r, g, b = clamp_rgb(rgb)
    return sRGBColor(r, g, b, is_upscaled=True).get_rgb_hex().upper()
