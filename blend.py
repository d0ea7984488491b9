"""
TPVMixer - 混色シミュレーション

混色はリニアRGB空間で行う(sRGBでもLabでもない)。
ガンマ展開した値の加重平均は光の物理的な混合に最も近く、
公開済みの目標ΔE値を再現するにはこの扱いを厳密に守る必要がある。
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from convert import (
    Lab,
    LinearRGB,
    RGB,
    linear_rgb_to_srgb,
    linear_rgb_to_xyz,
    srgb_to_lab,
    srgb_to_linear_rgb,
    xyz_to_lab,
)


@dataclass(frozen=True)
class ReferenceColourant:
    """パレットの基準色 (code / name / sRGB / Lab / リニアRGB)"""

    code: str
    name: str
    rgb: RGB
    lab: Lab
    linear_rgb: LinearRGB = field(default=None, compare=False)

    def __post_init__(self):
        # リニアRGBは生成時に1回だけ計算
        if self.linear_rgb is None:
            object.__setattr__(self, "linear_rgb", srgb_to_linear_rgb(self.rgb))


def make_colourant(code: str, name: str, rgb: Sequence[int],
                   lab: Optional[Sequence[float]] = None) -> ReferenceColourant:
    """基準色を生成。Labが無ければsRGBから計算する"""
    rgb = tuple(int(c) for c in rgb)
    if lab is None:
        lab = srgb_to_lab(rgb)
    return ReferenceColourant(code=str(code), name=str(name), rgb=rgb,
                              lab=tuple(float(v) for v in lab))


def enhance_colours(rows: Iterable[Mapping]) -> List[ReferenceColourant]:
    """
    パレット行 (code, name, R, G, B[, L, a, b]) を基準色リストに変換

    コードが重複している場合は後の行を無視する。
    """
    colours = []
    seen = set()
    for row in rows:
        code = str(row["code"])
        if code in seen:
            continue
        seen.add(code)
        lab = None
        if all(k in row and row[k] is not None for k in ("L", "a", "b")):
            lab = (row["L"], row["a"], row["b"])
        colours.append(make_colourant(code, row.get("name", code),
                                      (row["R"], row["G"], row["B"]), lab))
    return colours


def mix_linear_rgb(components: Iterable[Tuple[LinearRGB, float]]) -> LinearRGB:
    """リニアRGBの加重平均。重み0以下は除外、合計0なら黒を返す"""
    r = g = b = 0.0
    total = 0.0
    for color, weight in components:
        if weight <= 0:
            continue
        r += color[0] * weight
        g += color[1] * weight
        b += color[2] * weight
        total += weight

    if total == 0:
        return (0.0, 0.0, 0.0)
    return (r / total, g / total, b / total)


def linear_to_lab_rgb(linear: LinearRGB) -> Tuple[Lab, RGB]:
    return xyz_to_lab(linear_rgb_to_xyz(linear)), linear_rgb_to_srgb(linear)


def mix(components: Iterable[Tuple[ReferenceColourant, float]]) -> Tuple[Lab, RGB]:
    """
    基準色を重み付きで混色

    Args:
        components: (基準色, 重み) のリスト。重みは正規化されていなくてよい

    Returns:
        (混色結果のLab値, 表示用sRGB)
    """
    linear = mix_linear_rgb((c.linear_rgb, w) for c, w in components)
    return linear_to_lab_rgb(linear)


def mix_lab(components: Iterable[Tuple[ReferenceColourant, float]]) -> Lab:
    """mix()のLabだけ版 (探索ループ用)"""
    linear = mix_linear_rgb((c.linear_rgb, w) for c, w in components)
    return xyz_to_lab(linear_rgb_to_xyz(linear))


def simulate_blend(colours: Union[Mapping[str, ReferenceColourant], Sequence[ReferenceColourant]],
                   weights: Mapping[str, float]) -> Tuple[Lab, RGB]:
    """コード→重みの配合を混色。パレットに無いコードは無視する"""
    if not isinstance(colours, Mapping):
        colours = {c.code: c for c in colours}
    components = [(colours[code], w) for code, w in weights.items()
                  if w > 0 and code in colours]
    return mix(components)


def normalize_weights(weights: Mapping[str, float]) -> Dict[str, float]:
    """重みの合計を1にする (合計0ならそのまま返す)"""
    total = sum(weights.values())
    if total == 0:
        return dict(weights)
    return {code: w / total for code, w in weights.items()}
