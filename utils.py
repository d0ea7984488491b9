"""
TPVMixer - データ読み込みと結果整形
"""

import json
from typing import Dict, List, Optional, Sequence

import pandas as pd

from blend import ReferenceColourant, enhance_colours
from parts import format_parts, format_percentages

PALETTE_COLUMNS = ["code", "name", "R", "G", "B"]


def load_palette(csv_path: str = "palette_database.csv") -> List[ReferenceColourant]:
    """
    パレットCSVを読み込んで基準色リストにする

    必須列: code, name, R, G, B / 任意列: L, a, b (無ければsRGBから計算)
    """
    df = pd.read_csv(csv_path)
    return palette_from_dataframe(df)


def palette_from_dataframe(df: pd.DataFrame) -> List[ReferenceColourant]:
    missing = [col for col in PALETTE_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"palette is missing columns: {', '.join(missing)}")

    rows = []
    for record in df.to_dict("records"):
        # 空欄のLabはNaNになるので計算させる
        for key in ("L", "a", "b"):
            if key in record and pd.isna(record[key]):
                record[key] = None
        rows.append(record)
    return enhance_colours(rows)


def palette_to_dataframe(colours: Sequence[ReferenceColourant]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "code": c.code,
            "name": c.name,
            "R": c.rgb[0], "G": c.rgb[1], "B": c.rgb[2],
            "L": c.lab[0], "a": c.lab[1], "b": c.lab[2],
        }
        for c in colours
    ])


def load_presets(json_path: str = "presets.json") -> Dict:
    """プリセット目標色JSONを読み込む"""
    with open(json_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def delta_e_verdict(delta_e: float) -> str:
    if delta_e < 1.0:
        return "ほぼ見分けがつきません"
    elif delta_e < 3.0:
        return "非常に近い色です"
    elif delta_e < 6.0:
        return "十分近い色です"
    elif delta_e < 10.0:
        return "やや差がありますが使用可能"
    return "差があります（パレットを増やすと精度向上）"


def format_recipe(recipe) -> str:
    if recipe.parts:
        return format_parts(recipe.parts)
    return format_percentages(recipe.weights)


def format_result_text(recipe, colours: Optional[Dict[str, ReferenceColourant]] = None) -> str:
    """配合を見やすいテキストに整形"""
    lines = []
    lines.append("【配合レシピ】")
    lines.append("")

    entries = sorted(recipe.weights.items(), key=lambda cw: cw[1], reverse=True)
    for code, weight in entries:
        name = colours[code].name if colours and code in colours else ""
        if recipe.parts:
            amount = f"{recipe.parts[code]} / {recipe.total} パーツ ({weight * 100:.1f}%)"
        else:
            amount = f"{weight * 100:.1f}%"
        lines.append(f"  {code} {name}".rstrip())
        lines.append(f"    → {amount}")

    lines.append("")
    if recipe.note:
        lines.append(recipe.note)
    lines.append(f"色差 ΔE00 = {recipe.delta_e:.2f}")
    lines.append(f"→ {delta_e_verdict(recipe.delta_e)}")

    return "\n".join(lines)


def recipes_to_dataframe(recipes: Sequence) -> pd.DataFrame:
    """配合リストを表形式に (UI表示・CSV/JSONエクスポート用)"""
    rows = []
    for rank, recipe in enumerate(recipes, start=1):
        data = recipe.to_dict()
        rows.append({
            "rank": rank,
            "kind": data["kind"],
            "recipe": format_recipe(recipe),
            "components": recipe.n_components,
            "parts_total": recipe.parts_total,
            "delta_e": round(recipe.delta_e, 2),
            "score": round(recipe.adjusted_delta_e, 2),
            "hex": data["hex"],
            "L": round(recipe.lab[0], 2),
            "a": round(recipe.lab[1], 2),
            "b": round(recipe.lab[2], 2),
            "note": recipe.note,
        })
    columns = ["rank", "kind", "recipe", "components", "parts_total", "delta_e",
               "score", "hex", "L", "a", "b", "note"]
    return pd.DataFrame(rows, columns=columns)
