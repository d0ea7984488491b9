"""
データ読み込みと結果整形のpytestテスト
"""

import json
from pathlib import Path

import pandas as pd
import pytest

from blend import make_colourant, simulate_blend
from convert import srgb_to_lab
from solver import BlendSolver, SolverConstraints
from utils import (
    delta_e_verdict,
    format_recipe,
    format_result_text,
    load_palette,
    load_presets,
    palette_from_dataframe,
    palette_to_dataframe,
    recipes_to_dataframe,
)


@pytest.fixture
def palette_csv(tmp_path):
    path = tmp_path / "palette.csv"
    path.write_text(
        "code,name,R,G,B,L,a,b\n"
        "RH01,Standard Red,183,30,45,,,\n"
        "RH10,Standard Green,0,107,63,39.0,-40.0,15.0\n"
        "RH30,Standard Beige,212,181,133,,,\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def palette():
    return [
        make_colourant("RH01", "Standard Red", (183, 30, 45)),
        make_colourant("RH30", "Standard Beige", (212, 181, 133)),
    ]


class TestLoading:

    def test_load_palette(self, palette_csv):
        colours = load_palette(str(palette_csv))
        assert [c.code for c in colours] == ["RH01", "RH10", "RH30"]
        assert colours[0].rgb == (183, 30, 45)
        # Labが空欄ならsRGBから計算
        assert colours[0].lab == pytest.approx(srgb_to_lab((183, 30, 45)))
        # Labが指定されていればそのまま
        assert colours[1].lab == (39.0, -40.0, 15.0)

    def test_missing_columns(self):
        df = pd.DataFrame([{"code": "RH01", "R": 1, "G": 2}])
        with pytest.raises(ValueError, match="name"):
            palette_from_dataframe(df)

    def test_bundled_palette(self, monkeypatch):
        monkeypatch.chdir(Path(__file__).parent)
        colours = load_palette()
        assert len(colours) == 21
        assert len({c.code for c in colours}) == 21

    def test_palette_round_trip_dataframe(self, palette):
        df = palette_to_dataframe(palette)
        assert list(df["code"]) == ["RH01", "RH30"]
        again = palette_from_dataframe(df)
        assert [c.lab for c in again] == [c.lab for c in palette]

    def test_load_presets(self, tmp_path):
        path = tmp_path / "presets.json"
        data = {"presets": [{"name": "Sand", "category": "neutral", "L": 75.0, "a": 4.0, "b": 22.0}]}
        path.write_text(json.dumps(data), encoding="utf-8")
        assert load_presets(str(path)) == data

    def test_bundled_presets(self, monkeypatch):
        monkeypatch.chdir(Path(__file__).parent)
        presets = load_presets()["presets"]
        assert presets
        for preset in presets:
            assert {"name", "category", "L", "a", "b"} <= set(preset)


class TestFormatting:

    def test_verdict(self):
        assert delta_e_verdict(0.5) == "ほぼ見分けがつきません"
        assert delta_e_verdict(2.0) == "非常に近い色です"
        assert delta_e_verdict(12.0).startswith("差があります")

    def test_percent_recipe_text(self, palette):
        target, _ = simulate_blend(palette, {"RH01": 0.5, "RH30": 0.5})
        recipe = BlendSolver(palette, SolverConstraints(max_components=2)).solve(target)[0]
        text = format_result_text(recipe, {c.code: c for c in palette})
        assert text.startswith("【配合レシピ】")
        assert "RH01 Standard Red" in text
        assert "ΔE00" in text
        assert format_recipe(recipe) == "50.0% RH01, 50.0% RH30"

    def test_parts_recipe_text(self, palette):
        target, _ = simulate_blend(palette, {"RH01": 2 / 3, "RH30": 1 / 3})
        constraints = SolverConstraints(max_components=2, mode="parts")
        recipe = BlendSolver(palette, constraints).solve(target)[0]
        assert format_recipe(recipe) == "2 parts RH01, 1 part RH30"
        assert "2 / 3 パーツ" in format_result_text(recipe)

    def test_recipes_to_dataframe(self, palette):
        target, _ = simulate_blend(palette, {"RH01": 0.5, "RH30": 0.5})
        recipes = BlendSolver(palette, SolverConstraints(max_components=2)).solve(target)
        df = recipes_to_dataframe(recipes)
        assert list(df.columns) == ["rank", "kind", "recipe", "components", "parts_total",
                                    "delta_e", "score", "hex", "L", "a", "b", "note"]
        assert list(df["rank"]) == list(range(1, len(recipes) + 1))
        assert set(df["kind"]) == {"percent"}

    def test_empty_dataframe(self):
        df = recipes_to_dataframe([])
        assert df.empty
        assert "delta_e" in df.columns
