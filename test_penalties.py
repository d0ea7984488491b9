"""
実用性ヒューリスティックのpytestテスト
"""

import pytest

from blend import make_colourant
from penalties import (
    DEFAULT_PENALTIES,
    HeuristicScorer,
    PenaltyConfig,
    anchor_bonus,
    opposition_penalty,
    sparsity_bonus,
)

WARM = (50.0, 60.0, 0.0)
COOL = (50.0, -60.0, 0.0)
YELLOWISH = (50.0, 0.0, 60.0)


def colourant(code, lab):
    return make_colourant(code, code, (0, 0, 0), lab=lab)


class TestOppositionPenalty:

    def test_far_apart_and_far_from_target(self):
        assert opposition_penalty(WARM, COOL, YELLOWISH) == DEFAULT_PENALTIES.opposition_penalty

    def test_one_colour_near_target(self):
        assert opposition_penalty(WARM, COOL, WARM) == 0.0

    def test_close_colours(self):
        assert opposition_penalty((50, 10, 0), (50, 12, 0), YELLOWISH) == 0.0

    def test_configurable(self):
        config = PenaltyConfig(opposition_penalty=5.0)
        assert opposition_penalty(WARM, COOL, YELLOWISH, config) == 5.0


class TestSparsityBonus:

    def test_dominant_and_adjuster(self):
        assert sparsity_bonus([0.8, 0.2]) == pytest.approx(-0.5)

    def test_dominant_only(self):
        assert sparsity_bonus([0.7, 0.3]) == pytest.approx(-0.3)

    def test_balanced(self):
        assert sparsity_bonus([0.5, 0.5]) == 0.0

    def test_order_independent(self):
        assert sparsity_bonus([0.1, 0.2, 0.7]) == sparsity_bonus([0.7, 0.2, 0.1])

    def test_empty(self):
        assert sparsity_bonus([]) == 0.0


class TestAnchorBonus:

    def test_main_colour_in_top_n(self):
        assert anchor_bonus(1.0, 0.7, [0.5, 1.0, 2.0]) == DEFAULT_PENALTIES.anchor_bonus

    def test_main_weight_too_small(self):
        assert anchor_bonus(1.0, 0.5, [0.5, 1.0, 2.0]) == 0.0

    def test_outside_top_n(self):
        distances = [float(d) for d in range(8)]
        assert anchor_bonus(7.0, 0.9, distances) == 0.0
        assert anchor_bonus(5.0, 0.9, distances) == DEFAULT_PENALTIES.anchor_bonus

    def test_no_singles(self):
        assert anchor_bonus(1.0, 0.9, []) == 0.0


class TestHeuristicScorer:

    def setup_method(self):
        self.warm = colourant("W", WARM)
        self.cool = colourant("C", COOL)
        self.scorer = HeuristicScorer(YELLOWISH, [self.warm, self.cool])

    def test_single_component_not_adjusted(self):
        assert self.scorer.penalty([(self.warm, 1.0)]) == 0.0
        assert self.scorer.adjust(3.0, [(self.warm, 1.0)]) == 3.0

    def test_pair_penalty_applied(self):
        penalty = self.scorer.penalty([(self.warm, 0.5), (self.cool, 0.5)])
        assert penalty == pytest.approx(DEFAULT_PENALTIES.opposition_penalty)

    def test_adjust_adds_penalty(self):
        comps = [(self.warm, 0.8), (self.cool, 0.2)]
        assert self.scorer.adjust(4.0, comps) == pytest.approx(4.0 + self.scorer.penalty(comps))

    def test_order_independent(self):
        a = self.scorer.penalty([(self.warm, 0.6), (self.cool, 0.4)])
        b = self.scorer.penalty([(self.cool, 0.4), (self.warm, 0.6)])
        assert a == b

    def test_three_way_factor(self):
        third = colourant("T", (50.0, 0.0, -60.0))
        scorer = HeuristicScorer(YELLOWISH, [self.warm, self.cool, third],
                                 PenaltyConfig(separation=20.0, dominant_bonus=0,
                                               adjuster_bonus=0, anchor_bonus=0))
        two = scorer.penalty([(self.warm, 0.5), (self.cool, 0.5)])
        three = scorer.penalty([(self.warm, 0.4), (self.cool, 0.3), (third, 0.3)])
        assert two == pytest.approx(2.0)
        # 3ペアとも対立するが、3色では係数0.5がかかる
        assert three == pytest.approx(3 * 2.0 * 0.5)

    def test_single_distances(self):
        assert set(self.scorer.single_distances) == {"W", "C"}
        assert self.scorer.sorted_distances == sorted(self.scorer.single_distances.values())
