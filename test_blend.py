"""
混色シミュレーションのpytestテスト
"""

import pytest

from blend import (
    enhance_colours,
    make_colourant,
    mix,
    mix_lab,
    mix_linear_rgb,
    normalize_weights,
    simulate_blend,
)
from convert import srgb_to_lab

RED = make_colourant("RH01", "Standard Red", (183, 30, 45))
BEIGE = make_colourant("RH30", "Standard Beige", (212, 181, 133))
WHITE = make_colourant("W", "White", (255, 255, 255))
BLACK = make_colourant("K", "Black", (0, 0, 0))


class TestColourant:

    def test_lab_computed_from_rgb(self):
        assert RED.lab == pytest.approx(srgb_to_lab((183, 30, 45)))

    def test_linear_rgb_cached(self):
        assert WHITE.linear_rgb == pytest.approx((1.0, 1.0, 1.0))
        assert BLACK.linear_rgb == (0.0, 0.0, 0.0)

    def test_explicit_lab_kept(self):
        c = make_colourant("X", "X", (10, 20, 30), lab=(1.0, 2.0, 3.0))
        assert c.lab == (1.0, 2.0, 3.0)

    def test_enhance_colours(self):
        rows = [
            {"code": "A", "name": "Alpha", "R": 183, "G": 30, "B": 45},
            {"code": "B", "name": "Beta", "R": 0, "G": 0, "B": 0, "L": 1.0, "a": 2.0, "b": 3.0},
            {"code": "A", "name": "Duplicate", "R": 1, "G": 1, "B": 1},
        ]
        colours = enhance_colours(rows)
        assert [c.code for c in colours] == ["A", "B"]
        assert colours[0].name == "Alpha"
        assert colours[1].lab == (1.0, 2.0, 3.0)


class TestMix:

    def test_same_colour_reproduces_lab(self):
        lab, rgb = mix([(RED, 0.5), (RED, 0.5)])
        assert lab == pytest.approx(RED.lab, abs=1e-9)
        assert rgb == RED.rgb

    def test_mixing_is_in_linear_light(self):
        """白黒50:50はsRGBの中間(128)ではなくリニアの中間(188)になる"""
        _, rgb = mix([(WHITE, 0.5), (BLACK, 0.5)])
        assert rgb == (188, 188, 188)

    def test_unnormalised_weights(self):
        lab_a = mix_lab([(RED, 1), (BEIGE, 1)])
        lab_b = mix_lab([(RED, 0.5), (BEIGE, 0.5)])
        assert lab_a == pytest.approx(lab_b)

    def test_zero_weights_give_black(self):
        assert mix_linear_rgb([((0.5, 0.5, 0.5), 0.0)]) == (0.0, 0.0, 0.0)
        lab, rgb = mix([(RED, 0.0), (BEIGE, -1.0)])
        assert lab == pytest.approx((0.0, 0.0, 0.0), abs=1e-9)
        assert rgb == (0, 0, 0)

    def test_zero_weight_component_ignored(self):
        assert mix_lab([(RED, 1.0), (BEIGE, 0.0)]) == pytest.approx(RED.lab)


class TestSimulateBlend:

    def test_sequence_and_mapping(self):
        weights = {"RH01": 0.7, "RH30": 0.3}
        by_seq = simulate_blend([RED, BEIGE], weights)
        by_map = simulate_blend({"RH01": RED, "RH30": BEIGE}, weights)
        assert by_seq == by_map

    def test_unknown_codes_skipped(self):
        lab, rgb = simulate_blend([RED, BEIGE], {"RH01": 1.0, "ZZ99": 1.0})
        assert lab == pytest.approx(RED.lab, abs=1e-9)
        assert rgb == RED.rgb

    def test_normalize_weights(self):
        assert normalize_weights({"A": 2, "B": 2}) == {"A": 0.5, "B": 0.5}
        assert normalize_weights({"A": 0}) == {"A": 0}
